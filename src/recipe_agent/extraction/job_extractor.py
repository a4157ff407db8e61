"""
Job Extractor - structured job records from extracted details text.

Runs after a recipe has collected raw item text. One short LLM call per
item turns the text into a JobData record; a cheap model is enough.
"""

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from recipe_agent.interfaces.llm import ILLMProvider, Message
from recipe_agent.recipe.context import ExtractedItem
from recipe_agent.recipe.navigator import extract_json_object

logger = logging.getLogger(__name__)

MAX_CONTENT_CHARS = 3000

EXTRACTION_SYSTEM = """Extract job details from job posting text. Output ONLY one JSON object, no explanation.

HINTS:
- The company name usually follows the job title, often on the next line
- Location follows the company, e.g. "Company · City, State · 2 days ago"
- Use null for anything the text does not state"""

EXTRACTION_USER = """Extract the job from this text:
---
{content}
---

Output this JSON structure with values from the text:
{{"title": "Job Title", "company": "Company Name", "location": "City, State or Remote", "salary": null, "jobType": "Full-time", "experienceLevel": null, "jobId": null, "description": "first 500 characters of the description", "postedTime": "2 days ago"}}"""


class JobData(BaseModel):
    """A structured job posting."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = "Unknown"
    company: str = "Unknown"
    location: Optional[str] = None
    salary: Optional[str] = None
    job_type: Optional[str] = Field(default=None, alias="jobType")
    experience_level: Optional[str] = Field(default=None, alias="experienceLevel")
    job_id: Optional[str] = Field(default=None, alias="jobId")
    description: Optional[str] = None
    posted_time: Optional[str] = Field(default=None, alias="postedTime")
    source_id: Optional[str] = Field(default=None, alias="sourceId")


def _partial_job(raw: dict) -> JobData:
    """Keep whatever string fields are usable when full validation fails."""
    cleaned = {
        key: value if isinstance(value, str) else str(value)
        for key, value in raw.items()
        if value not in (None, "") and not isinstance(value, (dict, list))
    }
    cleaned.setdefault("title", "Unknown")
    cleaned.setdefault("company", "Unknown")
    return JobData.model_validate(cleaned)


class JobExtractor:
    """
    Turns ExtractedItem text into JobData with one LLM call per item.

    Example:
        >>> extractor = JobExtractor(provider)
        >>> jobs = await extractor.extract_many(result.items)
    """

    def __init__(self, llm: ILLMProvider, model: Optional[str] = None):
        self._llm = llm
        self._model = model

    async def extract(self, item: ExtractedItem) -> Optional[JobData]:
        """
        Structure one item.

        Returns None when the LLM call fails or the reply has no JSON.
        A reply that does not fully validate still yields a partial record.
        """
        content = item.content[:MAX_CONTENT_CHARS]
        messages = [
            Message.system(EXTRACTION_SYSTEM),
            Message.user(EXTRACTION_USER.format(content=content)),
        ]

        try:
            response = await self._llm.complete(messages, model=self._model, temperature=0.0)
        except Exception as e:
            logger.error(f"Job extraction failed for {item.id}: {e}")
            return None

        raw = extract_json_object(response.content)
        if raw is None:
            logger.warning(f"No JSON in extractor response for {item.id}")
            return None

        try:
            job = JobData.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Partial job data for {item.id}: {e.error_count()} invalid fields")
            job = _partial_job(raw)

        job.title = job.title or "Unknown"
        job.company = job.company or "Unknown"
        job.source_id = item.id
        if not job.job_id:
            job.job_id = item.id
        return job

    async def extract_many(self, items: Iterable[ExtractedItem]) -> List[JobData]:
        """Structure items one by one, dropping those that fail."""
        jobs: List[JobData] = []
        for item in items:
            job = await self.extract(item)
            if job is not None:
                jobs.append(job)
        logger.info(f"Extracted {len(jobs)} structured jobs")
        return jobs
