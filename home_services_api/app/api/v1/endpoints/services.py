"""
Service catalogue endpoints.  Reading is public; writing requires an administrator.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Path, status

from home_services_api.app.core.errors import ServiceError, raise_http_error
from home_services_api.app.core.security import ROLE_ADMIN, require_roles
from home_services_api.app.schemas.service import ServiceCreate, ServiceRead, ServiceUpdate
from home_services_api.app.services.catalog_service import CatalogService

router = APIRouter()


@router.get("", response_model=List[ServiceRead])
async def list_services(category: Optional[str] = None) -> List[ServiceRead]:
    return await CatalogService.list_services(category)


@router.get("/{service_id}", response_model=ServiceRead)
async def get_service(service_id: int = Path(..., description="ID of the service")) -> ServiceRead:
    try:
        return await CatalogService.get_service(service_id)
    except ServiceError as e:
        raise_http_error(e)


@router.post("", response_model=ServiceRead, status_code=status.HTTP_201_CREATED)
async def create_service(
    service: ServiceCreate,
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> ServiceRead:
    try:
        return await CatalogService.create_service(service)
    except ServiceError as e:
        raise_http_error(e)


@router.put("/{service_id}", response_model=ServiceRead)
async def update_service(
    update: ServiceUpdate,
    service_id: int = Path(..., description="ID of the service"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> ServiceRead:
    try:
        return await CatalogService.update_service(service_id, update)
    except ServiceError as e:
        raise_http_error(e)


@router.delete("/{service_id}")
async def delete_service(
    service_id: int = Path(..., description="ID of the service"),
    current_user: dict = Depends(require_roles(ROLE_ADMIN)),
) -> dict:
    try:
        await CatalogService.delete_service(service_id)
    except ServiceError as e:
        raise_http_error(e)
    return {"message": "Service removed"}
