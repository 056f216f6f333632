"""AWS Lambda handler for the DinElPortal Tracking API.

Wraps the FastAPI application with the Mangum adapter so it runs on AWS
Lambda behind API Gateway.
"""

from mangum import Mangum

from elportal.main import app

# api_gateway_base_path strips the stage name from paths
handler = Mangum(app, lifespan="off", api_gateway_base_path="/v1")


def lambda_handler(event: dict, context: object) -> dict:
    """
    AWS Lambda function handler.

    Args:
        event: API Gateway event containing request details
        context: Lambda context object with runtime information

    Returns:
        API Gateway response dict with statusCode, headers, and body

    Notes:
        - The KV store and production cache live on the warm instance only
        - Environment variables are loaded from Lambda configuration
    """
    return handler(event, context)
