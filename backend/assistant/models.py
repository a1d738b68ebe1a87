"""
Pydantic models for the shopping pipeline.

These are the shapes exchanged with the language-model collaborators and
returned to API clients.
"""

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Classification(BaseModel):
    """
    Structured attributes of a search term.

    Every field is a string; missing or null values become "". The German
    keys some classifier prompts produce are accepted as aliases.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: str = Field('', validation_alias=AliasChoices('category', 'kategorie'))
    brand: str = Field('', validation_alias=AliasChoices('brand', 'marke'))
    model: str = Field('', validation_alias=AliasChoices('model', 'modellname', 'model_name'))
    color: str = Field('', validation_alias=AliasChoices('color', 'colour', 'farbe'))
    collaboration: str = Field('', validation_alias=AliasChoices('collaboration', 'kollaboration'))

    @field_validator('*', mode='before')
    @classmethod
    def _coerce_to_text(cls, value):
        if value is None:
            return ''
        if isinstance(value, (list, tuple)):
            return ', '.join(str(v) for v in value if v is not None)
        if not isinstance(value, str):
            return str(value)
        return value.strip()


class SearchTermReply(BaseModel):
    """Reply of the query rewrite collaborator."""
    search_term: str = Field(validation_alias=AliasChoices('searchTerm', 'search_term'))


class RankedPick(BaseModel):
    """One ranker choice: a source and a positional index into its candidates."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source: str
    id: int = Field(validation_alias=AliasChoices('id', 'positionalIndex', 'index'))


class RankedProduct(BaseModel):
    """A ranked product as shown in the chat."""
    rank: int
    source: str
    index: int
    id: str
    retailer: str
    brand: str
    name: str
    size: str = ''
    price: str
    condition: str = ''
    image_url: str = ''
    product_url: str = ''


class SourceSummary(BaseModel):
    """Per-source counts for one turn."""
    source: str
    name: str
    scraped: int = 0
    ranked: int = 0
    error: Optional[str] = None


class TurnResult(BaseModel):
    """Everything produced by one conversational turn."""
    query: str
    search_term: str
    mode: str
    classification: Optional[Classification] = None
    products: List[RankedProduct] = Field(default_factory=list)
    summary: List[SourceSummary] = Field(default_factory=list)
    message: str
