"""
ASGI config for the Tasks project.

Serves both traditional ASGI servers (Uvicorn, Daphne) and AWS Lambda
through Mangum.
"""
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

# Initialize Django at import time so Lambda pays the cost on cold start,
# not on the first request.
from django.core.asgi import get_asgi_application

application = get_asgi_application()


def get_lambda_handler():
    """
    Returns a Mangum-wrapped handler for AWS Lambda.
    """
    from mangum import Mangum
    return Mangum(application, lifespan="off")


_lambda_handler = None


def lambda_handler(event, context):
    """
    AWS Lambda entry point for API Gateway HTTP requests.
    """
    global _lambda_handler
    if _lambda_handler is None:
        _lambda_handler = get_lambda_handler()
    return _lambda_handler(event, context)
