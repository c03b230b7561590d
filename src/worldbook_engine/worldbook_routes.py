"""
FastAPI routes for worldbook operations.

Provides HTTP endpoints for importing files, managing groups and entries,
batch reorganization, and resolving an agent's associated world info.
"""

from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from .worldbook import UNGROUPED, EmptyImportError, NewGroup, WorldbookManager
from .worldbook.ingestion import kind_from_filename


class GroupRequest(BaseModel):
    """Request body for creating or renaming a group."""

    name: str


class EntryRequest(BaseModel):
    """Request body for creating an entry."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    content: str = ""
    group_id: Optional[str] = Field(None, alias="groupId")
    keywords: List[str] = Field(default_factory=list)
    enabled: bool = True


class EntryUpdateRequest(BaseModel):
    """Request body for editing an entry. Omitted fields are left unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    content: Optional[str] = None
    group_id: Optional[str] = Field(None, alias="groupId")
    keywords: Optional[List[str]] = None
    enabled: Optional[bool] = None


class BatchRequest(BaseModel):
    """Request body for batch move/delete within one view."""

    scope: str = UNGROUPED
    ids: List[str]
    target: Optional[str] = None
    new_group_name: Optional[str] = None


class ResolveRequest(BaseModel):
    """Request body for resolving an agent's associated entries."""

    model_config = ConfigDict(populate_by_name=True)

    worldbook_ids: List[str] = Field(default_factory=list, alias="worldbookIds")


def init_worldbook_routes(manager: WorldbookManager) -> APIRouter:
    """
    Create and return API routes for worldbook operations.

    Args:
        manager: WorldbookManager instance

    Returns:
        APIRouter: Configured router with worldbook endpoints
    """
    router = APIRouter(prefix="/worldbook", tags=["worldbook"])

    @router.post("/import")
    async def import_file(
        file: UploadFile = File(...),
        target_group_id: Optional[str] = Form(None),
        new_group_name: Optional[str] = Form(None),
    ):
        """
        Import a JSON, DOCX or PNG character card file.

        Args:
            file: Uploaded file
            target_group_id: Optional existing group for the imported entries
            new_group_name: Optional name of a group to create for them

        Returns:
            Ids of the imported entries and their groups
        """
        try:
            if not file.filename:
                raise HTTPException(status_code=400, detail="Filename is required")

            kind = kind_from_filename(file.filename)
            content = await file.read()

            if not content:
                raise HTTPException(status_code=400, detail="File is empty")
            if len(content) > manager.config.max_upload_bytes:
                raise HTTPException(status_code=400, detail="File is too large")

            result = await manager.import_file(
                content,
                kind,
                file.filename,
                target_group_id=target_group_id or None,
                new_group_name=new_group_name or None,
            )

            return JSONResponse(
                status_code=200,
                content={
                    "success": True,
                    "message": f"Imported {result['count']} entries from '{file.filename}'",
                    "data": result,
                },
            )

        except HTTPException:
            raise
        except EmptyImportError as e:
            logger.info(f"Nothing to import: {e}")
            raise HTTPException(status_code=422, detail=str(e))
        except ValueError as e:
            logger.error(f"Validation error during import: {e}")
            raise HTTPException(status_code=400, detail=str(e))

    @router.get("")
    async def get_worldbook():
        """Return all groups and entries."""
        snapshot = await manager.get_snapshot()
        return JSONResponse(status_code=200, content={"success": True, "data": snapshot})

    @router.post("/groups")
    async def create_group(request: GroupRequest):
        try:
            group = await manager.create_group(request.name)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return JSONResponse(status_code=200, content={"success": True, "data": group})

    @router.patch("/groups/{group_id}")
    async def rename_group(group_id: str, request: GroupRequest):
        snapshot = await manager.get_snapshot()
        if not any(g["id"] == group_id for g in snapshot["groups"]):
            raise HTTPException(status_code=404, detail=f"Group '{group_id}' not found")
        try:
            group = await manager.rename_group(group_id, request.name)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return JSONResponse(status_code=200, content={"success": True, "data": group})

    @router.delete("/groups/{group_id}")
    async def delete_group(group_id: str):
        """
        Delete a group. Its entries are kept and become ungrouped.
        """
        moved = await manager.delete_group(group_id)
        if moved is None:
            raise HTTPException(status_code=404, detail=f"Group '{group_id}' not found")
        return JSONResponse(
            status_code=200,
            content={
                "success": True,
                "message": f"Group '{group_id}' deleted, {moved} entries ungrouped",
                "data": {"ungrouped": moved},
            },
        )

    @router.post("/entries")
    async def create_entry(request: EntryRequest):
        try:
            entry = await manager.create_entry(
                name=request.name,
                content=request.content,
                group_id=request.group_id,
                keywords=request.keywords,
                enabled=request.enabled,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return JSONResponse(status_code=200, content={"success": True, "data": entry})

    @router.patch("/entries/{entry_id}")
    async def update_entry(entry_id: str, request: EntryUpdateRequest):
        changes = request.model_dump(exclude_unset=True)
        try:
            entry = await manager.update_entry(entry_id, **changes)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Entry '{entry_id}' not found")
        return JSONResponse(status_code=200, content={"success": True, "data": entry})

    @router.delete("/entries/{entry_id}")
    async def delete_entry(entry_id: str):
        if not await manager.delete_entry(entry_id):
            raise HTTPException(status_code=404, detail=f"Entry '{entry_id}' not found")
        return JSONResponse(
            status_code=200,
            content={"success": True, "message": f"Entry '{entry_id}' deleted successfully"},
        )

    @router.post("/batch/move")
    async def batch_move(request: BatchRequest):
        """
        Move selected entries of one view to a group, to ungrouped, or to a new group.
        """
        if request.new_group_name:
            target = NewGroup(request.new_group_name)
        elif request.target:
            target = request.target
        else:
            raise HTTPException(status_code=400, detail="A target or new_group_name is required")

        try:
            moved = await manager.batch_move(request.scope, request.ids, target)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return JSONResponse(status_code=200, content={"success": True, "data": {"moved": moved}})

    @router.post("/batch/delete")
    async def batch_delete(request: BatchRequest):
        deleted = await manager.batch_delete(request.scope, request.ids)
        return JSONResponse(
            status_code=200, content={"success": True, "data": {"deleted": deleted}}
        )

    @router.post("/resolve")
    async def resolve(request: ResolveRequest):
        """
        Resolve an agent's `worldbookIds` into prompt text.
        """
        text = await manager.resolve(request.worldbook_ids)
        return JSONResponse(status_code=200, content={"success": True, "data": {"text": text}})

    return router
