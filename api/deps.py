"""
API dependencies.

Provides dependency injection for the flow registry and flow lookup.
"""

import logging
from typing import Optional, Annotated
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Path, status

from authflow.config import load_config, Config
from authflow.flow import FlowController
from authflow.gateway import AuthGateway, DemoAuthGateway
from authflow.registry import FlowRegistry

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Container for all services."""
    config: Config
    flows: FlowRegistry


# Global services instance (singleton)
_services: Optional[Services] = None


def build_gateway(config: Config) -> AuthGateway:
    """Gateway used by every flow the API creates."""
    return DemoAuthGateway(
        verification_code=config.demo.verification_code,
        latency_seconds=config.demo.latency_seconds,
    )


def get_services() -> Services:
    """
    Get or create the services singleton.

    This initializes the flow registry on first call.
    """
    global _services

    if _services is None:
        logger.info("Initializing services...")

        config = load_config()
        flows = FlowRegistry(lambda: build_gateway(config), config=config)

        _services = Services(config=config, flows=flows)

        logger.info("Services initialized successfully")

    return _services


def close_services():
    """Close every live flow and drop the singleton."""
    global _services
    if _services:
        _services.flows.close_all()
        _services = None
        logger.info("Services closed")


# Dependency for getting services
def services_dep() -> Services:
    """FastAPI dependency for services."""
    return get_services()


ServicesDep = Annotated[Services, Depends(services_dep)]


def get_flow(
    services: ServicesDep,
    flow_id: str = Path(..., description="Flow id returned on creation")
) -> FlowController:
    """
    Look up a live flow.

    Raises 404 if the flow is unknown or expired.
    """
    controller = services.flows.get(flow_id)
    if controller is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Flow not found or expired"
        )
    return controller


FlowDep = Annotated[FlowController, Depends(get_flow)]
