# app/main.py
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from app.api.v1.endpoints import (
    ai, attempts, auth, dashboard, documents, generation, health, quizzes, users,
)
from app.core.config import settings
from app.core.logging_config import setup_logging
from middleware.request_logging import RequestLoggingMiddleware
import logging

# Configurar logging al inicio de la aplicacion
setup_logging()
logger = logging.getLogger('app')

app = FastAPI(
    title='OnQuiz API',
    description='''
    ## Backend API for the onboarding quiz platform

    **Services:**
    - **Health Check**: database and AI gateway status
    - **Authentication**: JWT login, signup, route access decisions
    - **Users**: company members and role management
    - **Documents**: upload, download, processed study material
    - **AI**: OCR text cleaning, formatting, highlighting, category suggestions, quiz generation
    - **Generation**: step-by-step document to quiz wizard
    - **Quizzes**: quiz catalog and assignments gated by position
    - **Attempts**: quiz taking and scoring
    - **Dashboard**: personal, team and company progress
    ''',
    version='1.0.0',
    openapi_url='/openapi.json',
    docs_url='/docs',
    redoc_url='/redoc'
)

logger.info('OnQuiz API starting up')

# Configurar CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        settings.FRONTEND_URL,
        'http://localhost:3000',
        'http://localhost:5173'
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(health.router, prefix='/api/v1', tags=['Health Check'])
app.include_router(auth.router, prefix='/api/v1', tags=['Authentication'])
app.include_router(users.router, prefix='/api/v1/users', tags=['Users'])
app.include_router(documents.router, prefix='/api/v1/documents', tags=['Documents'])
app.include_router(ai.router, prefix='/api/v1/ai', tags=['AI'])
app.include_router(generation.router, prefix='/api/v1/generation', tags=['Quiz Generation'])
app.include_router(quizzes.router, prefix='/api/v1/quizzes', tags=['Quizzes'])
app.include_router(attempts.router, prefix='/api/v1/attempts', tags=['Attempts'])
app.include_router(dashboard.router, prefix='/api/v1/dashboard', tags=['Dashboard'])


@app.get('/')
async def root():
    return {
        'message': 'OnQuiz API',
        'status': 'operational',
        'version': '1.0.0',
        'docs': '/docs',
        'available_services': [
            'health', 'auth', 'users', 'documents', 'ai', 'generation', 'quizzes', 'attempts', 'dashboard'
        ],
    }


@app.get('/metrics', include_in_schema=False)
async def prometheus_metrics():
    """Prometheus scrape endpoint"""
    return Response(
        generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )

if __name__ == '__main__':
    import uvicorn
    uvicorn.run(app, host='0.0.0.0', port=8000)
