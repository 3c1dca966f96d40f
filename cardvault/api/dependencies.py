from fastapi import Request

from cardvault.bootstrap import Services


def get_services(request: Request) -> Services:
    """Services built by the app lifespan."""
    services: Services = request.app.state.services
    return services
