from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class Progress(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    completed_topic_ids: List[int]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CourseProgressResponse(BaseModel):
    total_topics: int
    completed: int
    percentage: int
    progress: Optional[Progress] = None
