"""
Records passed between the scraping stages.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional, Any


@dataclass
class ScrapedOpportunity:
    """
    One listing pulled off a source page.

    Transient: produced by an extractor, possibly given a longer description
    by the enricher, then either published as an opportunity row or dropped.
    """
    title: str
    description: str
    organization: str
    source_url: str
    deadline: Optional[str] = None  # raw text as scraped
    location: Optional[str] = None
    application_url: Optional[str] = None
    posted_date: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @property
    def combined_text(self) -> str:
        """Title + description, the text keyword filters and categorization look at"""
        return f"{self.title} {self.description}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], organization: str, source_url: str) -> 'ScrapedOpportunity':
        return cls(
            title=data['title'],
            description=data['description'],
            organization=data.get('organization') or organization,
            source_url=data.get('source_url') or source_url,
            deadline=data.get('deadline'),
            location=data.get('location'),
            application_url=data.get('application_url'),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PublishOutcome(str, Enum):
    INSERTED = 'inserted'
    UPDATED = 'updated'
    DUPLICATE = 'duplicate'
    UNCLASSIFIED = 'unclassified'
    SKIPPED = 'skipped'
    FAILED = 'failed'


@dataclass
class PublishCounts:
    """Per-run publication tally"""
    published: int = 0
    updated: int = 0
    duplicates: int = 0
    unclassified: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, outcome: PublishOutcome):
        if outcome == PublishOutcome.INSERTED:
            self.published += 1
        elif outcome == PublishOutcome.UPDATED:
            self.updated += 1
        elif outcome == PublishOutcome.DUPLICATE:
            self.duplicates += 1
        elif outcome == PublishOutcome.UNCLASSIFIED:
            self.unclassified += 1
        elif outcome == PublishOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
