"""
Phase Controller: drives one training session through its ordered phases.

    checkin (optional) -> lesson -> retrieval -> roleplay -> debrief -> mission -> complete

The controller holds no per-session state between calls. Each ``submit``
takes the caller's snapshot, validates the request against it, runs the
phase, and returns a new snapshot. Errors raised mid-phase carry the updated
snapshot so retry counters survive the round trip.
"""

from __future__ import annotations

import random
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from typing import TYPE_CHECKING, Callable, Iterator, Sequence

from loguru import logger

from edge.core.errors import (
    EdgeError,
    ExternalServiceError,
    PhaseMismatchError,
    SessionBusyError,
    StaleSnapshotError,
    ValidationError,
)
from edge.core.extractor import (
    ActivitySummary,
    DebriefResult,
    MissionResult,
    extract_checkin,
    extract_debrief,
    extract_mission,
    extract_readiness,
    fallback_debrief,
    fallback_mission,
)
from edge.core.models import NOT_EXECUTED, Message, MissionStatus, SessionRecord, SessionScores
from edge.core.rate_limit import RateLimiter
from edge.integrations.text_client import GenerationConfig, TextGenerator, build_phase_configs
from edge.learning.concepts import CONCEPTS, Concept, select_concept
from edge.learning.personas import Persona, get_persona, select_persona
from edge.learning.spaced_repetition import ReviewScheduler
from edge.prompts import builders
from edge.session.phases import (
    REQUEST_PHASES,
    CheckInRequest,
    CoachRequest,
    DebriefRequest,
    LessonRequest,
    MissionRequest,
    Phase,
    PhaseRequest,
    PhaseResult,
    PhaseSnapshot,
    RetrievalRequest,
    RoleplayRequest,
    TranscriptTurn,
)
from edge.storage.ledger import LedgerStore

if TYPE_CHECKING:
    from config import Settings

COMMAND_ALIASES = {"done": "finish"}
SLASH_COMMANDS = {"/coach": "coach", "/reset": "reset", "/skip": "skip", "/finish": "finish", "/done": "finish"}


def _local_now() -> datetime:
    return datetime.now().astimezone()


class PhaseController:
    """Validates and dispatches phase requests for a single user."""

    def __init__(
        self,
        ledger: LedgerStore,
        scheduler: ReviewScheduler,
        text_client: TextGenerator,
        rate_limiter: RateLimiter,
        settings: Settings,
        *,
        catalogue: Sequence[Concept] = CONCEPTS,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _local_now,
    ):
        self.ledger = ledger
        self.scheduler = scheduler
        self.text_client = text_client
        self.rate_limiter = rate_limiter
        self.settings = settings
        self.catalogue = tuple(catalogue)
        self._rng = rng or random.Random()
        self._clock = clock
        self._configs = build_phase_configs(settings)
        self._limits = settings.get_rate_limits()
        self._in_flight: set[str] = set()
        self._in_flight_lock = threading.Lock()

        self._handlers: dict[str, Callable[[PhaseSnapshot, PhaseRequest], PhaseResult]] = {
            "checkin": self._checkin,
            "lesson": self._lesson,
            "retrieval": self._retrieval,
            "roleplay": self._roleplay,
            "coach": self._coach_request,
            "debrief": self._debrief,
            "mission": self._mission,
        }

    # =========================================================================
    # Entry points
    # =========================================================================

    def start(self) -> PhaseResult:
        """Open a new session; check-in only runs when yesterday's mission is unresolved."""
        last = self.ledger.last()
        day = self.ledger.count() + 1
        needs_checkin = last is not None and last.mission_status is MissionStatus.PENDING

        snapshot = PhaseSnapshot(
            session_id=uuid.uuid4().hex,
            phase=Phase.CHECKIN if needs_checkin else Phase.LESSON,
            day=day,
            captured_at=self._clock(),
        )
        logger.info(f"Session {snapshot.session_id} started: day {day}, phase {snapshot.phase.value}")

        data = {"day": day}
        if needs_checkin:
            data["previous_mission"] = last.mission
        return PhaseResult(snapshot=snapshot, data=data)

    def submit(self, snapshot: PhaseSnapshot, request: PhaseRequest, client_key: str = "local") -> PhaseResult:
        """
        Run one phase request.

        Raises:
            RateLimitExceeded: endpoint budget for this client is spent
            SessionBusyError: another request for the session is in flight
            StaleSnapshotError: snapshot is past its expiry
            PhaseMismatchError: request does not belong to the current phase
            ValidationError: request not allowed in the current state
            ExternalServiceError: generative call failed (carries snapshot)
            PersistenceError: ledger or schedule write failed (carries snapshot)
        """
        endpoint = self.endpoint_for(request)
        limit = self._limits[endpoint]

        with self._claim(snapshot.session_id):
            self._validate(snapshot, request)
            # Rejected requests above do not spend the budget.
            allowance = self.rate_limiter.enforce(
                f"{client_key}:{endpoint}",
                limit,
                self.settings.rate_limit_window_seconds,
            )
            working = snapshot.model_copy(deep=True)
            try:
                result = self._handlers[request.kind](working, request)
            except EdgeError as e:
                if e.snapshot is None:
                    e.snapshot = working
                raise

        result.snapshot.captured_at = self._clock()
        result.rate_limit = {"limit": limit, "remaining": allowance.remaining}
        return result

    @staticmethod
    def endpoint_for(request: PhaseRequest) -> str:
        """Rate-limit endpoint; coach tokens count against ``coach``."""
        if isinstance(request, RoleplayRequest) and _roleplay_command(request) == "coach":
            return "coach"
        return request.kind

    # =========================================================================
    # Guards
    # =========================================================================

    @contextmanager
    def _claim(self, session_id: str) -> Iterator[None]:
        with self._in_flight_lock:
            if session_id in self._in_flight:
                raise SessionBusyError("A request for this session is already in progress")
            self._in_flight.add(session_id)
        try:
            yield
        finally:
            with self._in_flight_lock:
                self._in_flight.discard(session_id)

    def _validate(self, snapshot: PhaseSnapshot, request: PhaseRequest) -> None:
        if snapshot.is_stale(self._clock(), self.settings.snapshot_max_age_hours):
            raise StaleSnapshotError("Session snapshot has expired; start a new session")
        if snapshot.phase is Phase.COMPLETE:
            raise PhaseMismatchError("Session is already complete", snapshot=snapshot)

        expected = REQUEST_PHASES[request.kind]
        if snapshot.phase is not expected:
            raise PhaseMismatchError(
                f"'{request.kind}' is not valid during the {snapshot.phase.value} phase",
                snapshot=snapshot,
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _today(self) -> date:
        return self._clock().date()

    def _config(self, phase: str) -> GenerationConfig:
        return self._configs[phase]

    def _context(self) -> str:
        records = self.ledger.read_all()
        labels = list(dict.fromkeys(r.concept for r in records))
        return builders.build_context(self.ledger.compact(self.settings.digest_size), labels)

    def _ask(self, phase: str, prompt: str) -> str:
        return self.text_client.generate(self._context(), [Message("user", prompt)], self._config(phase))

    def _concept(self, snapshot: PhaseSnapshot) -> Concept:
        for concept in self.catalogue:
            if concept.id == snapshot.concept_id:
                return concept
        raise ValidationError(f"Unknown concept '{snapshot.concept_id}' in snapshot")

    def _persona(self, snapshot: PhaseSnapshot) -> Persona:
        persona = get_persona(snapshot.persona_id or "")
        if persona is None:
            raise ValidationError(f"Unknown persona '{snapshot.persona_id}' in snapshot")
        return persona

    def _scores(self, snapshot: PhaseSnapshot) -> SessionScores:
        if snapshot.scores is None:
            raise ValidationError("Snapshot has no debrief scores")
        try:
            return SessionScores.from_dict(snapshot.scores)
        except ValueError as e:
            raise ValidationError(f"Invalid scores in snapshot: {e}") from e

    @staticmethod
    def _record_command(snapshot: PhaseSnapshot, command: str) -> None:
        if command not in snapshot.commands_used:
            snapshot.commands_used.append(command)

    # =========================================================================
    # CheckIn
    # =========================================================================

    def _checkin(self, snapshot: PhaseSnapshot, request: CheckInRequest) -> PhaseResult:
        last = self.ledger.last()
        if last is None:
            raise ValidationError("There is no previous session to check in on")

        status = MissionStatus(request.outcome)
        report = request.report.strip()

        if status is MissionStatus.SKIPPED:
            reply, tag = builders.SKIPPED_CHECKIN_REPLY, "SKIPPED"
            outcome = NOT_EXECUTED
        else:
            prompt = builders.build_checkin_prompt(last.mission, status.value, report)
            reply, tag = extract_checkin(self._ask("checkin", prompt))
            outcome = report or status.value

        # Only written once the reply exists, so a failed call can be retried.
        self.ledger.mutate_last_outcome(outcome, status)

        snapshot.checkin_status = status.value
        snapshot.phase = Phase.LESSON
        return PhaseResult(snapshot=snapshot, reply=reply, data={"checkin_type": tag, "outcome": outcome})

    # =========================================================================
    # Lesson
    # =========================================================================

    def _lesson(self, snapshot: PhaseSnapshot, request: LessonRequest) -> PhaseResult:
        if request.concept_id:
            concept = next((c for c in self.catalogue if c.id == request.concept_id), None)
            if concept is None:
                raise ValidationError(f"Unknown concept '{request.concept_id}'")
            snapshot.concept_id = concept.id
            snapshot.is_review = concept.id in self.ledger.completed_concept_ids()
        elif snapshot.concept_id is None:
            last = self.ledger.last()
            selection = select_concept(
                self.catalogue,
                self.ledger.completed_concept_ids(),
                self.scheduler.due(self._today()),
                self._rng,
                self.settings.review_probability,
                last_concept_id=last.concept_id if last else None,
            )
            snapshot.concept_id = selection.concept.id
            snapshot.is_review = selection.is_review

        concept = self._concept(snapshot)
        lesson = self._ask("lesson", builders.build_lesson_prompt(concept))

        snapshot.lesson_text = lesson
        snapshot.phase = Phase.RETRIEVAL
        logger.info(f"Session {snapshot.session_id}: lesson on {concept.id} (review={snapshot.is_review})")
        return PhaseResult(
            snapshot=snapshot,
            reply=lesson,
            data={"concept": concept.to_dict(), "is_review": snapshot.is_review},
        )

    # =========================================================================
    # RetrievalCheck
    # =========================================================================

    def _retrieval(self, snapshot: PhaseSnapshot, request: RetrievalRequest) -> PhaseResult:
        concept = self._concept(snapshot)
        max_attempts = self.settings.retrieval_max_attempts

        if request.override:
            if snapshot.retrieval_attempts < max_attempts:
                raise ValidationError(
                    f"Override is only available after {max_attempts} unsuccessful answers"
                )
            logger.info(f"Session {snapshot.session_id}: retrieval overridden")
            return self._enter_roleplay(snapshot, concept, "Moving on. Keep the principle in mind.", overridden=True)

        answer = (request.answer or "").strip()
        if not answer:
            question = builders.RECALL_QUESTION.format(name=concept.name)
            return PhaseResult(snapshot=snapshot, reply=question, data={"question": True})

        if snapshot.retrieval_attempts >= max_attempts:
            raise ValidationError("No recall attempts remain; send an override to continue")

        prompt = f"{builders.build_retrieval_prompt(concept)}\n\nTHE USER'S ANSWER: {answer}"
        verdict = extract_readiness(self._ask("retrieval", prompt))
        snapshot.retrieval_attempts += 1

        if verdict.ready:
            snapshot.retrieval_ready = True
            return self._enter_roleplay(snapshot, concept, verdict.feedback, overridden=False)

        remaining = max_attempts - snapshot.retrieval_attempts
        return PhaseResult(
            snapshot=snapshot,
            reply=verdict.feedback,
            data={"ready": False, "attempts_remaining": remaining, "override_available": remaining == 0},
        )

    def _enter_roleplay(self, snapshot: PhaseSnapshot, concept: Concept, reply: str, overridden: bool) -> PhaseResult:
        persona = select_persona(concept, self._rng)
        snapshot.persona_id = persona.id
        snapshot.scenario = builders.build_scenario(concept, persona)
        snapshot.phase = Phase.ROLEPLAY
        return PhaseResult(
            snapshot=snapshot,
            reply=reply,
            data={
                "ready": not overridden,
                "overridden": overridden,
                "persona": {"id": persona.id, "name": persona.name, "difficulty": persona.difficulty},
                "scenario": snapshot.scenario,
            },
        )

    # =========================================================================
    # Roleplay
    # =========================================================================

    def _roleplay(self, snapshot: PhaseSnapshot, request: RoleplayRequest) -> PhaseResult:
        command = _roleplay_command(request)
        if command is not None:
            self._record_command(snapshot, command)
            if command == "coach":
                return self._coach(snapshot)
            if command == "reset":
                snapshot.transcript = []
                return self._open(snapshot)
            snapshot.phase = Phase.DEBRIEF
            logger.info(f"Session {snapshot.session_id}: roleplay ended by /{command}")
            return PhaseResult(snapshot=snapshot, data={"command": command, **self._turn_data(snapshot)})

        message = (request.message or "").strip()
        if not snapshot.transcript:
            if message:
                raise ValidationError("The counterpart speaks first; request the opening turn before replying")
            return self._open(snapshot)
        if not message:
            raise ValidationError("A message is required to continue the roleplay")

        messages = snapshot.messages() + [Message("user", message)]
        if messages[0].role == "assistant":
            messages.insert(0, Message("user", builders.OPENING_TRIGGER))

        reply = self.text_client.generate(self._roleplay_system(snapshot), messages, self._config("roleplay"))
        snapshot.transcript.append(TranscriptTurn(role="user", content=message))
        snapshot.transcript.append(TranscriptTurn(role="assistant", content=reply))
        return PhaseResult(snapshot=snapshot, reply=reply, data=self._turn_data(snapshot))

    def _open(self, snapshot: PhaseSnapshot) -> PhaseResult:
        opening = self.text_client.generate(
            self._roleplay_system(snapshot),
            [Message("user", builders.OPENING_TRIGGER)],
            self._config("roleplay"),
        )
        snapshot.transcript = [TranscriptTurn(role="assistant", content=opening)]
        return PhaseResult(snapshot=snapshot, reply=opening, data={"opening": True, **self._turn_data(snapshot)})

    def _roleplay_system(self, snapshot: PhaseSnapshot) -> str:
        concept = self._concept(snapshot)
        persona = self._persona(snapshot)
        scenario = snapshot.scenario or builders.build_scenario(concept, persona)
        return f"{self._context()}\n\n{builders.build_roleplay_prompt(concept, persona, scenario)}"

    def _turn_data(self, snapshot: PhaseSnapshot) -> dict:
        user_turns = snapshot.user_turns()
        return {
            "turns": len(snapshot.transcript),
            "user_turns": user_turns,
            "suggest_finish": user_turns >= self.settings.roleplay_soft_turn_limit,
        }

    def _coach_request(self, snapshot: PhaseSnapshot, request: CoachRequest) -> PhaseResult:
        self._record_command(snapshot, "coach")
        return self._coach(snapshot)

    def _coach(self, snapshot: PhaseSnapshot) -> PhaseResult:
        """Side-channel advice; never touches the transcript and never raises on service failure."""
        concept = self._concept(snapshot)
        prompt = builders.build_coach_prompt(concept, snapshot.messages())
        try:
            advice = self._ask("coach", prompt)
            available = True
        except ExternalServiceError as e:
            logger.warning(f"Coach unavailable for session {snapshot.session_id}: {e}")
            advice, available = builders.COACH_UNAVAILABLE, False
        return PhaseResult(snapshot=snapshot, reply=advice, data={"coach": True, "available": available})

    # =========================================================================
    # Debrief
    # =========================================================================

    def _debrief(self, snapshot: PhaseSnapshot, request: DebriefRequest) -> PhaseResult:
        concept = self._concept(snapshot)
        persona = self._persona(snapshot)
        transcript = snapshot.messages()

        prompt = builders.build_debrief_prompt(
            concept,
            persona,
            transcript,
            self.ledger.count(),
            self.ledger.compact(self.settings.digest_size),
        )
        try:
            result: DebriefResult = extract_debrief(self._ask("debrief", prompt))
        except ExternalServiceError as e:
            snapshot.debrief_failures += 1
            if snapshot.debrief_failures < self.settings.fallback_after_failures:
                e.snapshot = snapshot
                raise
            logger.warning(
                f"Session {snapshot.session_id}: debrief failed {snapshot.debrief_failures} times; "
                f"using activity-based fallback"
            )
            result = fallback_debrief(ActivitySummary.from_transcript(transcript, snapshot.commands_used))

        snapshot.scores = result.scores.to_dict()
        snapshot.weakness_summary = result.weakness_summary
        snapshot.key_moment = result.key_moment
        snapshot.debrief_text = result.display_text
        snapshot.debrief_fallback = result.fallback
        snapshot.phase = Phase.MISSION

        return PhaseResult(
            snapshot=snapshot,
            reply=result.display_text,
            data={
                "scores": result.scores.to_dict(),
                "average": round(result.scores.average(), 2),
                "weakness_summary": result.weakness_summary,
                "key_moment": result.key_moment,
                "scores_found": result.scores_found,
                "fallback": result.fallback,
            },
        )

    # =========================================================================
    # Mission and completion
    # =========================================================================

    def _mission(self, snapshot: PhaseSnapshot, request: MissionRequest) -> PhaseResult:
        concept = self._concept(snapshot)
        persona = self._persona(snapshot)
        scores = self._scores(snapshot)
        fallback = False

        # Each step is skipped on retry once its result is in the snapshot.
        if snapshot.mission is None:
            prompt = builders.build_mission_prompt(concept, scores, self.ledger.compact(self.settings.digest_size))
            try:
                result: MissionResult = extract_mission(self._ask("mission", prompt))
            except ExternalServiceError as e:
                snapshot.mission_failures += 1
                if snapshot.mission_failures < self.settings.fallback_after_failures:
                    e.snapshot = snapshot
                    raise
                logger.warning(f"Session {snapshot.session_id}: mission failed twice; using neutral mission")
                result = fallback_mission()
            snapshot.mission = result.directive
            snapshot.rationale = result.rationale
            fallback = result.fallback

        today = self._today()
        if snapshot.recorded_day is None:
            record = SessionRecord(
                day=snapshot.day,
                date=today,
                concept=concept.label,
                concept_id=concept.id,
                domain=concept.domain,
                persona=persona.name,
                difficulty=persona.difficulty,
                scores=scores,
                weakness_summary=snapshot.weakness_summary or "",
                key_moment=snapshot.key_moment or "",
                mission=snapshot.mission,
                commands_used=tuple(snapshot.commands_used),
            )
            stored = self.ledger.append(record)
            snapshot.recorded_day = stored.day

        entry = self.scheduler.record_practice(concept.id, scores, today)
        snapshot.phase = Phase.COMPLETE
        logger.info(f"Session {snapshot.session_id} complete: day {snapshot.recorded_day}, next review {entry.next_review}")

        return PhaseResult(
            snapshot=snapshot,
            reply=snapshot.mission,
            data={
                "mission": snapshot.mission,
                "rationale": snapshot.rationale,
                "fallback": fallback,
                "day": snapshot.recorded_day,
                "next_review": entry.next_review.isoformat(),
                "interval_days": entry.interval_days,
            },
        )


def _roleplay_command(request: RoleplayRequest) -> str | None:
    if request.command:
        return COMMAND_ALIASES.get(request.command, request.command)
    message = (request.message or "").strip().lower()
    return SLASH_COMMANDS.get(message)
