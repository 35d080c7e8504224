from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class RecordFailureModel(BaseModel):
    index: int
    row: Optional[int] = None
    code: Optional[int] = None
    message: str


class ContractModel(BaseModel):
    name: str
    version: str


class UploadResponse(BaseModel):
    success: bool = True
    message: str
    message_hi: str
    insertedCount: int = Field(..., ge=0)
    totalProcessed: int = Field(..., ge=0)
    skippedCount: int = Field(..., ge=0)
    errorCount: int = Field(..., ge=0)
    errorSamples: List[RecordFailureModel]
    sample: List[Dict[str, Any]]
    headerRowIndex: int = Field(..., ge=0)
    sheetName: Optional[str] = None
    warnings: List[str] = []
    contract: ContractModel
    summary: Dict[str, Any]


class PageResponse(BaseModel):
    success: bool = True
    count: int
    totalCount: int
    currentPage: int
    totalPages: int
    data: List[Dict[str, Any]]


class SearchResponse(PageResponse):
    query: str
    searchLanguage: str
    contract: ContractModel


class DetailResponse(BaseModel):
    success: bool = True
    data: Dict[str, Any]


class DeleteResponse(BaseModel):
    success: bool = True
    message: str
    message_hi: str
    deletedCount: int


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    mongodb: Dict[str, Any]


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
    message_hi: str
    insertedCount: Optional[int] = None
    errorCount: Optional[int] = None
