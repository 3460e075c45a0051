"""
HLA / crossmatch extraction from lab reports.

Pipeline: Azure Document Intelligence layout (markdown) per report -> one
JSON-mode chat completion -> ``HlaExtraction``. The result is partial by
nature; ``merge_extracted_hla`` folds it into a tissue-typing payload without
ever replacing entered data with an empty value.
"""
import asyncio
import io
import json
import logging
from typing import Dict, List, Optional, Tuple

from azure.ai.documentintelligence import DocumentIntelligenceClient
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError
from openai import AzureOpenAI, OpenAIError
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from transplantflow.config import Settings, get_settings
from transplantflow.core.exceptions import ExternalServiceError
from transplantflow.schemas.workflow import LOCI, TissueTypingPayload

logger = logging.getLogger(__name__)

PARSE_FAILED = "Failed to parse the medical reports. Please ensure the uploaded files are clear and valid."

SYSTEM_PROMPT = """You are a specialized medical data extraction agent.
Analyze the provided reports, which may include HLA typing, T/B cell crossmatch (CDC) and donor-specific antibody (DSA) reports.
Return ONLY a JSON object matching the schema.

Instructions:
1. HLA typing: identify the Patient/Recipient and the Donor ("Patient" and "Recipient" mean the same person). Extract the two alleles for each locus A, B, C, DRB1, DQB1, DPB1, reporting DRB1 as DR, DQB1 as DQ and DPB1 as DP. If a report covers only one person, leave the other person's loci as empty arrays.
2. CDC crossmatch: if the T-cell and B-cell crossmatches are Negative (typically <20% dead cells) the result is "Negative", otherwise "Positive".
3. DSA: a Negative class I and class II IgG DSA result means "Absent"; a Positive result means "Present".
4. DSA interpretation: copy any comment, MFI values or interpretation text about the DSA findings.
5. Anything not found: use "Pending" for cdc/dsa, an empty string for text and empty arrays for loci."""

TARGET_SCHEMA = {
    "donor_hla": {locus: "List of up to 2 allele strings" for locus in LOCI},
    "recipient_hla": {locus: "List of up to 2 allele strings" for locus in LOCI},
    "crossmatch": {
        "cdc": "Pending | Negative | Positive",
        "dsa": "Pending | Absent | Present",
        "dsa_interpretation": "String",
    },
}


class ExtractedCrossmatch(BaseModel):
    model_config = ConfigDict(extra="ignore")

    cdc: str = ""
    dsa: str = ""
    dsa_interpretation: str = ""


class HlaExtraction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    donor_hla: Dict[str, List[str]] = Field(default_factory=dict)
    recipient_hla: Dict[str, List[str]] = Field(default_factory=dict)
    crossmatch: ExtractedCrossmatch = Field(default_factory=ExtractedCrossmatch)


def _is_empty(value: Optional[str]) -> bool:
    return value is None or not str(value).strip() or str(value).strip() == "Pending"


def merge_extracted_hla(current: TissueTypingPayload, extracted: HlaExtraction) -> TissueTypingPayload:
    """
    Copy of ``current`` with every non-empty extracted value applied.

    Empty strings and "Pending" never overwrite. Flow crossmatch and the final
    assessment are not extracted and stay as they are.
    """
    merged = current.model_copy(deep=True)
    for typing, found in ((merged.donor_hla, extracted.donor_hla), (merged.recipient_hla, extracted.recipient_hla)):
        for locus in LOCI:
            values = found.get(locus) or []
            slots = typing.alleles(locus)
            for i in range(2):
                if i < len(values) and not _is_empty(values[i]):
                    while len(slots) <= i:
                        slots.append("")
                    slots[i] = values[i].strip()

    crossmatch = extracted.crossmatch
    if crossmatch.cdc in ("Negative", "Positive"):
        merged.crossmatch.cdc = crossmatch.cdc
    if crossmatch.dsa in ("Absent", "Present"):
        merged.crossmatch.dsa = crossmatch.dsa
    if not _is_empty(crossmatch.dsa_interpretation):
        merged.crossmatch.dsa_interpretation = crossmatch.dsa_interpretation.strip()
    return merged


class HlaExtractionService:
    def __init__(self, settings: Optional[Settings] = None,
                 doc_client: Optional[DocumentIntelligenceClient] = None,
                 openai_client: Optional[AzureOpenAI] = None):
        self.settings = settings or get_settings()
        self._doc_client = doc_client
        self._openai_client = openai_client

    def _clients(self) -> Tuple[DocumentIntelligenceClient, AzureOpenAI]:
        s = self.settings
        if self._doc_client is None:
            if not (s.azure_doc_intel_endpoint and s.azure_doc_intel_key):
                raise ExternalServiceError("Azure Document Intelligence is not configured.")
            self._doc_client = DocumentIntelligenceClient(
                endpoint=s.azure_doc_intel_endpoint,
                credential=AzureKeyCredential(s.azure_doc_intel_key),
            )
        if self._openai_client is None:
            if not (s.azure_openai_endpoint and s.azure_openai_key):
                raise ExternalServiceError("Azure OpenAI is not configured.")
            self._openai_client = AzureOpenAI(
                azure_endpoint=s.azure_openai_endpoint,
                api_key=s.azure_openai_key,
                api_version=s.azure_openai_api_version,
            )
        return self._doc_client, self._openai_client

    @staticmethod
    def _layout_markdown(client: DocumentIntelligenceClient, content: bytes) -> str:
        poller = client.begin_analyze_document(
            "prebuilt-layout",
            body=io.BytesIO(content),
            output_content_format="markdown",
        )
        return poller.result().content or ""

    def _extract(self, reports: List[Tuple[str, bytes]]) -> HlaExtraction:
        doc_client, openai_client = self._clients()
        sections = []
        for filename, content in reports:
            logger.info("Extracting layout for report %s (%d bytes)", filename, len(content))
            sections.append(f"--- REPORT {filename} ---\n{self._layout_markdown(doc_client, content)}")
        text = "\n\n".join(sections)
        if not text.strip():
            return HlaExtraction()

        logger.info("Sending %d report(s) for HLA extraction (length=%d chars)", len(reports), len(text))
        response = openai_client.chat.completions.create(
            model=self.settings.azure_openai_deployment,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": f"Reports:\n{text}\n\nSchema:\n{json.dumps(TARGET_SCHEMA)}"},
            ],
            temperature=0,
            response_format={"type": "json_object"},
        )
        raw = response.choices[0].message.content or "{}"
        return HlaExtraction.model_validate(json.loads(raw))

    async def extract(self, reports: List[Tuple[str, bytes]]) -> HlaExtraction:
        """Raises ExternalServiceError on any configuration, provider or parsing failure."""
        if not reports:
            raise ExternalServiceError("No reports were provided for extraction.")
        try:
            return await asyncio.to_thread(self._extract, reports)
        except (AzureError, OpenAIError, json.JSONDecodeError, ValidationError) as e:
            logger.error("HLA extraction failed: %s", e)
            raise ExternalServiceError(PARSE_FAILED) from e
