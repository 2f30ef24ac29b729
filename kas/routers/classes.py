from fastapi import APIRouter, Depends

from kas.core.deps import get_directory
from kas.schemas.report import ClassItem, ClassListResponse
from kas.services.headteachers import HeadteacherDirectory

router = APIRouter(prefix="/api", tags=["classes"])


@router.get("/classes", response_model=ClassListResponse)
async def get_classes(directory: HeadteacherDirectory = Depends(get_directory)):
    """
    Public endpoint: class -> head teacher listing (no auth required)
    """
    classes = [
        ClassItem(class_id=item["class"], headteacher=item["headteacher"])
        for item in directory.all_classes()
    ]
    return ClassListResponse(data=classes, count=len(classes))
