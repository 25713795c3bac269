import logging

from fastapi import FastAPI

from stockroom.config import settings
from stockroom.routers import documents, inventory
from stockroom.security.sessions import install_auth_session_middleware

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

app = FastAPI(title='Stockroom Back Office')

install_auth_session_middleware(app)

app.include_router(documents.router)
app.include_router(inventory.router)


@app.get('/health')
def health() -> dict:
    return {'status': 'ok'}
