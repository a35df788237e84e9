"""
API routes for usage sync.
"""
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from usage_sync.core.config import config
from usage_sync.core.context import SyncContext
from usage_sync.domain.usage_data import UsageDataError, parse_attributes
from usage_sync.domain.usage_models import Project, ResourceUsage, UsageItem, ValueType, set_default_values
from usage_sync.services.reference_file import ReferenceFileError
from usage_sync.services.resource_factory import ResourceDeclaration, build_resource
from usage_sync.services.usage_file import UsageFileError, items_from_mapping, usage_file_from_dict, usage_file_to_dict
from usage_sync.services.usage_sync import sync_usage_data


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/usage", tags=["usage"])


class UsageSchemaItem(BaseModel):
    """A usage item declared by a resource type."""
    key: str = Field(..., description="Usage attribute key")
    value_type: ValueType = Field(..., description="Declared value type")
    description: str = Field(default="", description="Human readable description")
    default_value: Any = Field(default=None, description="Optional default value")


class ResourceRequest(BaseModel):
    """A resource to sync usage for."""
    name: str = Field(..., description="Resource address, e.g. aws_lambda_function.hello")
    type: str = Field(default="", description="Resource type (derived from the address if empty)")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Resource attributes used by estimators")
    usage_schema: List[UsageSchemaItem] = Field(default_factory=list, description="Usage items the resource declares")


class ProjectRequest(BaseModel):
    """A project and its resources."""
    name: str = Field(default="default", description="Project name")
    resources: List[ResourceRequest] = Field(default_factory=list)


class UsageSyncRequest(BaseModel):
    """Request model for a usage sync."""
    usage_file: Optional[Dict[str, Any]] = Field(None, description="Existing usage document")
    projects: List[ProjectRequest] = Field(default_factory=list)


class EstimationWarning(BaseModel):
    """An estimation failure for one resource."""
    resource: str
    error: str


class UsageSyncResponse(BaseModel):
    """Response model for a usage sync."""
    status: str
    usage_file: Dict[str, Any]
    resource_count: int
    estimation_count: int
    warnings: List[EstimationWarning]


def _matches_value_type(value: Any, value_type: ValueType) -> bool:
    if value_type == ValueType.INT64:
        return isinstance(value, int) and not isinstance(value, bool)
    if value_type == ValueType.FLOAT64:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if value_type == ValueType.STRING:
        return isinstance(value, str)
    if value_type == ValueType.STRING_ARRAY:
        return isinstance(value, list) and all(isinstance(element, str) for element in value)
    return isinstance(value, dict)


def _usage_item_from_schema(schema_item: UsageSchemaItem) -> UsageItem:
    default_value = schema_item.default_value
    if default_value is not None and not _matches_value_type(default_value, schema_item.value_type):
        raise UsageDataError(
            f"Default value for '{schema_item.key}' does not match value type {schema_item.value_type.value}"
        )
    if schema_item.value_type == ValueType.SUB_RESOURCE_USAGE and default_value is not None:
        items = items_from_mapping(parse_attributes(default_value, prefix=f"{schema_item.key}."))
        set_default_values(items)
        default_value = ResourceUsage(name=schema_item.key, items=items)
    elif schema_item.value_type == ValueType.FLOAT64 and default_value is not None:
        default_value = float(default_value)
    return UsageItem(
        key=schema_item.key,
        value_type=schema_item.value_type,
        description=schema_item.description,
        default_value=default_value,
    )


def _build_projects(projects: List[ProjectRequest]) -> List[Project]:
    return [
        Project(
            name=project.name,
            resources=[
                build_resource(ResourceDeclaration(
                    name=resource.name,
                    type=resource.type,
                    attributes=resource.attributes,
                    usage_schema=[_usage_item_from_schema(item) for item in resource.usage_schema],
                ))
                for resource in project.resources
            ],
        )
        for project in projects
    ]


@router.post("/sync", response_model=UsageSyncResponse)
async def sync_usage(request: UsageSyncRequest):
    """
    Sync a usage document against the given resources.

    Estimation failures are returned as warnings; the synced usage document
    is returned either way.
    """
    try:
        usage_file = usage_file_from_dict(request.usage_file)
        projects = _build_projects(request.projects)
    except (UsageFileError, UsageDataError) as error:
        raise HTTPException(status_code=400, detail=str(error))

    ctx = SyncContext(timeout=config.ESTIMATION_DEADLINE_SECONDS)

    try:
        sync_result = await sync_usage_data(usage_file, projects, ctx)
    except ReferenceFileError as error:
        logger.error("Usage sync failed: %s", error)
        raise HTTPException(status_code=500, detail="Reference usage file is unavailable")

    return UsageSyncResponse(
        status="ok",
        usage_file=usage_file_to_dict(usage_file),
        resource_count=sync_result.resource_count,
        estimation_count=sync_result.estimation_count,
        warnings=[
            EstimationWarning(resource=name, error=str(error))
            for name, error in sync_result.estimation_errors.items()
        ],
    )
