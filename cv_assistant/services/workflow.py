"""Per-session orchestration of ingestion and the generation stages.

A ``WorkflowSession`` owns both input documents, every stage result and the
status of the five stages. All mutations go through the transition helpers
below. Every stage start takes a fresh token; a response whose token is no
longer current is dropped, so a superseded call can never overwrite newer
state.
"""
from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum

from cv_assistant.core.config import settings
from cv_assistant.normalize.normalize_input import (
    InputDocument,
    InputRole,
    IngestState,
    UploadedFile,
    empty_document,
    normalize_file,
    normalize_pasted,
)
from cv_assistant.schemas.documents import AnalysisResult, EvaluationResult, GeneratedDocument
from cv_assistant.services.extraction import ExtractionError
from cv_assistant.services.generation import GenerationError, GenerationGateway

logger = logging.getLogger(__name__)


class StageName(str, Enum):
    ANALYZE = "analyze"
    CREATE_CV = "create_cv"
    CREATE_COVER_LETTER = "create_cover_letter"
    EVALUATE = "evaluate"
    REGENERATE = "regenerate"


class StageStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class StageState:
    status: StageStatus = StageStatus.IDLE
    error: str | None = None
    token: int = 0


class StagePreconditionError(Exception):
    pass


class StageBusyError(StagePreconditionError):
    pass


_ANALYSIS_DOWNSTREAM = (
    StageName.CREATE_CV,
    StageName.CREATE_COVER_LETTER,
    StageName.EVALUATE,
    StageName.REGENERATE,
)


class WorkflowSession:
    def __init__(
        self,
        gateway: GenerationGateway,
        *,
        session_id: str | None = None,
        min_input_chars: int | None = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.gateway = gateway
        self.min_input_chars = settings.min_input_chars if min_input_chars is None else min_input_chars
        self.inputs: dict[InputRole, InputDocument] = {role: empty_document(role) for role in InputRole}
        self.analysis: AnalysisResult | None = None
        self.cv_document: GeneratedDocument | None = None
        self.cover_letter: GeneratedDocument | None = None
        self.evaluation: EvaluationResult | None = None
        self.stages: dict[StageName, StageState] = {name: StageState() for name in StageName}
        self._ingest_tokens: dict[InputRole, int] = {role: 0 for role in InputRole}
        self.last_active = time.monotonic()

    # -- transitions -------------------------------------------------------

    def _begin(self, stage: StageName) -> int:
        state = self.stages[stage]
        state.token += 1
        state.status = StageStatus.RUNNING
        state.error = None
        logger.info("stage_started session=%s stage=%s token=%s", self.session_id, stage.value, state.token)
        return state.token

    def _is_current(self, stage: StageName, token: int) -> bool:
        current = self.stages[stage].token == token
        if not current:
            logger.info("stage_stale_response_discarded session=%s stage=%s token=%s", self.session_id, stage.value, token)
        return current

    def _succeed(self, stage: StageName) -> None:
        self.stages[stage].status = StageStatus.SUCCEEDED
        logger.info("stage_succeeded session=%s stage=%s", self.session_id, stage.value)

    def _fail(self, stage: StageName, exc: GenerationError) -> None:
        state = self.stages[stage]
        state.status = StageStatus.FAILED
        state.error = str(exc)
        logger.warning("stage_failed session=%s stage=%s code=%s", self.session_id, stage.value, exc.code)

    def _reset(self, stage: StageName) -> None:
        # bumping the token also orphans any call still in flight for this stage
        state = self.stages[stage]
        state.token += 1
        state.status = StageStatus.IDLE
        state.error = None

    def _reset_analysis_downstream(self) -> None:
        for stage in _ANALYSIS_DOWNSTREAM:
            self._reset(stage)
        self.cv_document = None
        self.cover_letter = None
        self.evaluation = None

    def _discard_results(self) -> None:
        self._reset(StageName.ANALYZE)
        self.analysis = None
        self._reset_analysis_downstream()

    def _discard_evaluation(self) -> None:
        self._reset(StageName.EVALUATE)
        self.evaluation = None

    # -- inputs ------------------------------------------------------------

    def touch(self) -> None:
        self.last_active = time.monotonic()

    @property
    def is_processing_input(self) -> bool:
        return any(document.is_processing for document in self.inputs.values())

    def _replace_input(self, document: InputDocument) -> None:
        self._ingest_tokens[document.role] += 1
        self.inputs[document.role] = document
        self._discard_results()

    def set_pasted(self, role: InputRole, text: str) -> InputDocument:
        self._replace_input(normalize_pasted(text, role))
        return self.inputs[role]

    def clear_input(self, role: InputRole) -> InputDocument:
        self._replace_input(empty_document(role))
        logger.info("input_cleared session=%s role=%s", self.session_id, role.value)
        return self.inputs[role]

    def reject_upload(self, role: InputRole, exc: ExtractionError) -> InputDocument:
        """Record an upload that was refused before it could be ingested."""
        self._replace_input(
            InputDocument(
                role=role,
                ingest_state=IngestState.FAILED,
                message=exc.user_message,
                error_kind=exc.kind.value,
            )
        )
        logger.warning(
            "upload_rejected session=%s role=%s kind=%s diagnostic=%s",
            self.session_id,
            role.value,
            exc.kind.value,
            exc.diagnostic,
        )
        return self.inputs[role]

    async def ingest_file(self, role: InputRole, file: UploadedFile) -> InputDocument:
        self._replace_input(InputDocument(role=role, source_label=file.filename, ingest_state=IngestState.UPLOADING))
        token = self._ingest_tokens[role]

        def on_progress(document: InputDocument) -> None:
            if self._ingest_tokens[role] == token:
                self.inputs[role] = document

        document = await normalize_file(file, role, on_progress=on_progress)
        if self._ingest_tokens[role] != token:
            logger.info("ingest_superseded session=%s role=%s file=%s", self.session_id, role.value, file.filename)
            return self.inputs[role]
        self.inputs[role] = document
        return document

    # -- gates -------------------------------------------------------------

    def ensure_not_running(self, *stages: StageName) -> None:
        for stage in stages:
            if self.stages[stage].status is StageStatus.RUNNING:
                raise StageBusyError(f"The {stage.value.replace('_', ' ')} step is already running.")

    def _require_inputs(self) -> tuple[str, str]:
        if self.is_processing_input:
            raise StagePreconditionError("Please wait until the uploaded files have been processed.")
        for role in InputRole:
            if not self.inputs[role].has_enough_text(self.min_input_chars):
                raise StagePreconditionError(
                    f"Please provide a {role.label} with at least {self.min_input_chars} characters."
                )
        return self.inputs[InputRole.CV].raw_text, self.inputs[InputRole.JOB_DESCRIPTION].raw_text

    def _inputs_ready(self) -> bool:
        try:
            self._require_inputs()
        except StagePreconditionError:
            return False
        return True

    def available_actions(self) -> dict[str, bool]:
        running = {name for name, state in self.stages.items() if state.status is StageStatus.RUNNING}
        letter_busy = bool(running & {StageName.CREATE_COVER_LETTER, StageName.REGENERATE, StageName.EVALUATE})
        inputs_ready = self._inputs_ready()
        job_description_ready = self.inputs[InputRole.JOB_DESCRIPTION].has_enough_text(self.min_input_chars)
        feedback = self.evaluation.overall_feedback.strip() if self.evaluation is not None else ""
        return {
            "analyze": inputs_ready and StageName.ANALYZE not in running,
            "create_cv": inputs_ready and StageName.CREATE_CV not in running,
            "create_cover_letter": inputs_ready and self.analysis is not None and not letter_busy,
            "evaluate": self.cover_letter is not None and job_description_ready and not letter_busy,
            "regenerate": inputs_ready and self.cover_letter is not None and bool(feedback) and not letter_busy,
        }

    # -- stages ------------------------------------------------------------

    async def analyze(self) -> None:
        cv_text, jd_text = self._require_inputs()
        token = self._begin(StageName.ANALYZE)
        self.analysis = None
        self._reset_analysis_downstream()
        try:
            result = await self.gateway.analyze(cv_text, jd_text)
        except GenerationError as exc:
            if self._is_current(StageName.ANALYZE, token):
                self._fail(StageName.ANALYZE, exc)
            return
        if not self._is_current(StageName.ANALYZE, token):
            return
        self.analysis = result
        self._succeed(StageName.ANALYZE)

    async def create_cv(self) -> None:
        cv_text, jd_text = self._require_inputs()
        if self.analysis is None:
            logger.info("create_cv_without_analysis session=%s", self.session_id)
        token = self._begin(StageName.CREATE_CV)
        self.cv_document = None
        try:
            document = await self.gateway.create_cv(cv_text, jd_text, self.analysis)
        except GenerationError as exc:
            if self._is_current(StageName.CREATE_CV, token):
                self._fail(StageName.CREATE_CV, exc)
            return
        if not self._is_current(StageName.CREATE_CV, token):
            return
        self.cv_document = document
        self._succeed(StageName.CREATE_CV)

    async def generate_cover_letter(self) -> None:
        """Create a cover letter, then evaluate exactly the text that came back."""
        cv_text, jd_text = self._require_inputs()
        if self.analysis is None:
            raise StagePreconditionError("Please analyze your CV before generating a cover letter.")
        token = self._begin(StageName.CREATE_COVER_LETTER)
        self._reset(StageName.REGENERATE)
        self._discard_evaluation()
        self.cover_letter = None
        try:
            letter = await self.gateway.create_cover_letter(cv_text, jd_text, self.analysis)
        except GenerationError as exc:
            if self._is_current(StageName.CREATE_COVER_LETTER, token):
                self._fail(StageName.CREATE_COVER_LETTER, exc)
            return
        if not self._is_current(StageName.CREATE_COVER_LETTER, token):
            return
        self.cover_letter = letter
        self._succeed(StageName.CREATE_COVER_LETTER)
        await self._evaluate(letter.content, jd_text)

    async def evaluate(self) -> None:
        if self.cover_letter is None:
            raise StagePreconditionError("Please generate a cover letter before evaluating it.")
        job_description = self.inputs[InputRole.JOB_DESCRIPTION]
        if not job_description.has_enough_text(self.min_input_chars):
            raise StagePreconditionError(
                f"Please provide a Job Description with at least {self.min_input_chars} characters."
            )
        await self._evaluate(self.cover_letter.content, job_description.raw_text)

    async def _evaluate(self, letter_text: str, jd_text: str) -> None:
        token = self._begin(StageName.EVALUATE)
        self.evaluation = None
        try:
            result = await self.gateway.evaluate_cover_letter(letter_text, jd_text)
        except GenerationError as exc:
            if self._is_current(StageName.EVALUATE, token):
                self._fail(StageName.EVALUATE, exc)
            return
        if not self._is_current(StageName.EVALUATE, token):
            return
        self.evaluation = result
        self._succeed(StageName.EVALUATE)

    async def regenerate_cover_letter(self) -> None:
        """Rewrite the current letter using the evaluation's overall feedback.

        The previous letter stays visible until the new one arrives and is kept
        if regeneration fails. The new letter is not evaluated automatically.
        """
        if self.cover_letter is None:
            raise StagePreconditionError("Please generate a cover letter before regenerating it.")
        if self.evaluation is None or not self.evaluation.overall_feedback.strip():
            raise StagePreconditionError("Regeneration needs an evaluation with feedback.")
        cv_text, jd_text = self._require_inputs()
        prior_letter = self.cover_letter.content
        prior_feedback = self.evaluation.overall_feedback
        token = self._begin(StageName.REGENERATE)
        self._discard_evaluation()
        try:
            letter = await self.gateway.create_cover_letter(
                cv_text,
                jd_text,
                self.analysis,
                prior_letter=prior_letter,
                prior_feedback=prior_feedback,
            )
        except GenerationError as exc:
            if self._is_current(StageName.REGENERATE, token):
                self._fail(StageName.REGENERATE, exc)
            return
        if not self._is_current(StageName.REGENERATE, token):
            return
        self.cover_letter = letter
        self._discard_evaluation()
        self._succeed(StageName.REGENERATE)
