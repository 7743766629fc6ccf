#!/usr/bin/env python3
"""
Celery Worker Entry Point
Run with: celery -A celery_worker.celery worker --loglevel=info
Beat:     celery -A celery_worker.celery beat --loglevel=info
"""
from clinic_api import create_app
from clinic_api.extensions import celery

# Create Flask app to initialize Celery (also registers clinic_tasks)
app = create_app()

if __name__ == '__main__':
    # For development: run worker with embedded beat
    celery.worker_main([
        'worker',
        '--beat',
        '--loglevel=info',
        '--concurrency=4'
    ])
