"""FastAPI dependency for the process-wide CRM client built in the app lifespan."""

from fastapi import Request

from src.vd_crm.client import CrmClient


def get_crm_client(request: Request) -> CrmClient:
    return request.app.state.crm_client
