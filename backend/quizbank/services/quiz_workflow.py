"""Custom quiz creation as a persisted state machine.

A QuizCreationJob moves pending -> collecting_questions -> selecting_questions
-> creating_quiz -> completed, with failed reachable from any state.
`QuizCreationWorkflow.advance` runs exactly one bounded step and writes its
output into `job.step_state_json`, so a worker can stop after any step and
the next run resumes from the stored cursor.

step_state_json layout:

  phase           start | random_global | random_aggregate | hierarchy |
                  modal_scan | sampling | select | create | materialize
  max_questions   clamped target
  nodes           [[level, node_id], ...] planned hierarchy or aggregate units
  node_index      position in `nodes`
  cursor          keyset cursor inside the current node, complement or modal table
  candidates      accumulated question ids (deduplicated, in order)
  filtered        modal-scan output
  seen            ids already drawn by sampling rounds
  rounds          sampling rounds done
  selected        final ids after `select`
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from quizbank.core.config import settings
from quizbank.models.custom_quiz import CustomQuiz
from quizbank.models.quiz_creation_job import TERMINAL_STATUSES, JobStatus, QuizCreationJob
from quizbank.models.quiz_session import QuizSession
from quizbank.services import question_collection as qc
from quizbank.services.aggregate_store import AggregateStore
from quizbank.services.shuffle import select_random
from quizbank.services.tenant_service import resolve_tenant_id

logger = logging.getLogger(__name__)

NO_QUESTIONS_FOUND = "NO_QUESTIONS_FOUND"
NO_QUESTIONS_FOUND_AFTER_FILTER = "NO_QUESTIONS_FOUND_AFTER_FILTER"
WORKFLOW_ERROR = "WORKFLOW_ERROR"

MSG_STARTING = "Iniciando criação do quiz..."
MSG_COLLECTING = "Coletando questões..."
MSG_SELECTING = "Selecionando questões aleatórias..."
MSG_CREATING = "Criando quiz..."
MSG_DONE = "Quiz criado com sucesso!"
MSG_FAILED = "Erro ao criar quiz"
ERROR_MESSAGES = {
    NO_QUESTIONS_FOUND: (
        "Nenhuma questão encontrada com os critérios selecionados. "
        "Tente ajustar os filtros ou selecionar temas diferentes."
    ),
    NO_QUESTIONS_FOUND_AFTER_FILTER: (
        "Nenhuma questão encontrada com os filtros selecionados. "
        "Tente ajustar os filtros ou selecionar temas diferentes."
    ),
}


class JobNotFoundError(LookupError):
    pass


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _append_unique(existing: List[int], new_ids: List[int]) -> List[int]:
    seen = set(existing)
    out = list(existing)
    for qid in new_ids:
        if qid not in seen:
            seen.add(qid)
            out.append(qid)
    return out


class QuizCreationWorkflow:
    def __init__(self, store: AggregateStore, *, page_size: Optional[int] = None):
        self.store = store
        self.page_size = int(page_size or settings.QUIZ_PAGE_SIZE)
        self._steps: Dict[str, Callable[[Session, QuizCreationJob, Dict[str, Any]], None]] = {
            "start": self._step_start,
            "random_global": self._step_random_global,
            "random_aggregate": self._step_random_aggregate,
            "hierarchy": self._step_hierarchy,
            "modal_scan": self._step_modal_scan,
            "sampling": self._step_sampling,
            "select": self._step_select,
            "create": self._step_create,
            "materialize": self._step_materialize,
        }

    # ----- driver -----
    def advance(self, db: Session, job_id: int) -> QuizCreationJob:
        job = db.get(QuizCreationJob, int(job_id))
        if job is None:
            raise JobNotFoundError(f"Quiz creation job {job_id} not found")
        if job.status in TERMINAL_STATUSES:
            return job

        try:
            state = dict(job.step_state_json or {})
            phase = state.get("phase") or "start"
            step = self._steps.get(phase)
            if step is None:
                raise ValueError(f"Unknown workflow phase: {phase}")
            step(db, job, state)
            job.step_count = int(job.step_count or 0) + 1
            db.commit()
        except Exception as e:
            logger.exception("quiz creation job %s failed", job_id)
            db.rollback()
            job = db.get(QuizCreationJob, int(job_id))
            if job is None:
                raise JobNotFoundError(f"Quiz creation job {job_id} not found") from e
            self._fail(job, WORKFLOW_ERROR, str(e) or "Erro desconhecido")
            db.commit()
        return job

    def run(self, db: Session, job_id: int, *, max_steps: Optional[int] = None) -> QuizCreationJob:
        """Advance until the job is terminal or `max_steps` steps ran."""
        steps = 0
        while True:
            job = self.advance(db, job_id)
            steps += 1
            if job.status in TERMINAL_STATUSES:
                return job
            if max_steps is not None and steps >= int(max_steps):
                return job

    # ----- helpers -----
    def _save(self, job: QuizCreationJob, state: Dict[str, Any], **next_state: Any) -> None:
        merged = dict(state)
        merged.update(next_state)
        job.step_state_json = merged

    def _progress(self, job: QuizCreationJob, status: JobStatus, progress: int, message: str) -> None:
        job.status = status.value
        job.progress = int(progress)
        job.progress_message = message

    def _fail(self, job: QuizCreationJob, code: str, message: str) -> None:
        job.status = JobStatus.failed.value
        job.error = code
        job.error_message = message
        job.progress_message = MSG_FAILED
        job.completed_at = _now()

    def _input(self, job: QuizCreationJob) -> Dict[str, Any]:
        return dict(job.input_json or {})

    def _mode(self, job: QuizCreationJob) -> qc.QuestionMode:
        return qc.QuestionMode(self._input(job).get("question_mode") or "all")

    def _selection(self, job: QuizCreationJob) -> qc.HierarchySelection:
        return qc.HierarchySelection.from_input(self._input(job))

    def _tenant(self, db: Session, job: QuizCreationJob) -> int:
        if job.tenant_id is None:
            job.tenant_id = resolve_tenant_id(db, None)
        if job.tenant_id is None:
            raise ValueError("No tenant for quiz creation job")
        return int(job.tenant_id)

    # ----- steps -----
    def _step_start(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        data = self._input(job)
        cap = int(settings.QUIZ_MAX_QUESTIONS)
        max_questions = min(int(data.get("num_questions") or cap), cap)
        mode = self._mode(job)
        selection = self._selection(job)
        self._tenant(db, job)

        if mode == qc.QuestionMode.all:
            if not selection.has_filters:
                phase = "random_global"
            elif settings.QUIZ_ALL_MODE_STRATEGY == "aggregate":
                phase = "random_aggregate"
            else:
                phase = "hierarchy"
        elif mode in (qc.QuestionMode.unanswered, qc.QuestionMode.incorrect, qc.QuestionMode.bookmarked):
            if selection.has_filters:
                phase = "hierarchy"
            elif mode == qc.QuestionMode.unanswered:
                phase = "sampling"
            else:
                phase = "modal_scan"
        else:
            raise ValueError(f"Unknown question mode: {mode}")

        overrides = qc.overrides_for(selection)
        if phase == "random_aggregate":
            nodes = qc.plan_aggregate_nodes(selection, overrides)
        else:
            nodes = qc.plan_hierarchy_nodes(selection, overrides)
        self._save(
            job,
            state,
            phase=phase,
            max_questions=max(1, max_questions),
            nodes=[[level, node_id] for level, node_id in nodes],
            node_index=0,
            cursor=None,
            candidates=[],
            filtered=[],
            seen=[],
            rounds=0,
        )
        self._progress(job, JobStatus.collecting_questions, 10, MSG_COLLECTING)

    def _step_random_global(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        ids = qc.collect_random_global(db, self.store, self._tenant(db, job), int(state["max_questions"]))
        self._save(job, state, phase="select", candidates=ids)

    def _step_random_aggregate(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        # One unit per step: a node draw, or one page of a subtheme complement
        nodes = state.get("nodes") or []
        index = int(state.get("node_index") or 0)
        candidates = list(state.get("candidates") or [])
        cursor = state.get("cursor")

        if index < len(nodes):
            kind, node_id = str(nodes[index][0]), int(nodes[index][1])
            tenant_id = self._tenant(db, job)
            if kind == "complement":
                excluded = qc.overrides_for(self._selection(job)).groups_by_subtheme.get(node_id, [])
                page = qc.collect_complement_page(db, tenant_id, node_id, excluded, cursor, self.page_size)
                candidates = _append_unique(candidates, page.ids)
                cursor = None if page.is_done else page.continue_cursor
                if page.is_done:
                    index += 1
            else:
                ids = qc.draw_aggregate_node(db, self.store, tenant_id, kind, node_id, int(state["max_questions"]))
                candidates = _append_unique(candidates, ids)
                cursor = None
                index += 1

        if index >= len(nodes):
            self._save(job, state, phase="select", node_index=index, cursor=None, candidates=candidates)
            self._progress(job, JobStatus.collecting_questions, 40, MSG_COLLECTING)
        else:
            self._save(job, state, node_index=index, cursor=cursor, candidates=candidates)

    def _step_hierarchy(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        nodes = state.get("nodes") or []
        index = int(state.get("node_index") or 0)
        candidates = list(state.get("candidates") or [])
        after = "select" if self._mode(job) == qc.QuestionMode.all else "modal_scan"

        if index >= len(nodes):
            self._save(job, state, phase=after, cursor=None)
            self._progress(job, JobStatus.collecting_questions, 40, MSG_COLLECTING)
            return

        level, node_id = nodes[index]
        page = qc.collect_hierarchy_page(
            db, self._tenant(db, job), str(level), int(node_id), state.get("cursor"), self.page_size
        )
        candidates = _append_unique(candidates, page.ids)
        if page.is_done:
            index += 1
            cursor = None
        else:
            cursor = page.continue_cursor

        if index >= len(nodes):
            self._save(job, state, phase=after, node_index=index, cursor=None, candidates=candidates)
            self._progress(job, JobStatus.collecting_questions, 40, MSG_COLLECTING)
        else:
            self._save(job, state, node_index=index, cursor=cursor, candidates=candidates)

    def _step_modal_scan(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        mode = self._mode(job)
        selection = self._selection(job)
        tenant_id = self._tenant(db, job)
        rows, cursor, is_done = qc.collect_modal_page(
            db, tenant_id, int(job.user_id), mode, state.get("cursor"), self.page_size
        )

        filtered = list(state.get("filtered") or [])
        if selection.has_filters:
            # `filtered` holds the modal ids that are also candidates
            candidates = set(state.get("candidates") or [])
            if mode == qc.QuestionMode.unanswered:
                page_ids = [r["question_id"] for r in rows]
            else:
                page_ids = qc.filter_modal_rows_by_hierarchy(rows, selection, qc.overrides_for(selection))
            filtered = _append_unique(filtered, [qid for qid in page_ids if qid in candidates])
        else:
            page_ids = [r["question_id"] for r in rows]
            alive = qc.existing_question_ids(db, tenant_id, page_ids)
            filtered = _append_unique(filtered, [qid for qid in page_ids if qid in alive])

        if not is_done:
            self._save(job, state, cursor=cursor, filtered=filtered)
            return

        if selection.has_filters:
            result = qc.apply_modal_filter(mode, state.get("candidates") or [], filtered)
        else:
            result = filtered
        self._save(job, state, phase="select", cursor=None, filtered=filtered, candidates=result)
        self._progress(job, JobStatus.collecting_questions, 50, MSG_COLLECTING)

    def _step_sampling(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        target = int(state["max_questions"])
        accepted_so_far = list(state.get("candidates") or [])
        seen = list(state.get("seen") or [])
        rounds = int(state.get("rounds") or 0)

        accepted, drawn, exhausted = qc.sample_candidates(
            db,
            self.store,
            self._tenant(db, job),
            int(job.user_id),
            self._mode(job),
            seen,
            int(settings.QUIZ_SAMPLING_BATCH_SIZE),
        )
        candidates = _append_unique(accepted_so_far, accepted)
        seen = _append_unique(seen, drawn)
        rounds += 1

        done = len(candidates) >= target or exhausted or rounds >= int(settings.QUIZ_SAMPLING_MAX_ROUNDS)
        if done:
            self._save(job, state, phase="select", candidates=candidates, seen=seen, rounds=rounds)
            self._progress(job, JobStatus.collecting_questions, 50, MSG_COLLECTING)
        else:
            self._save(job, state, candidates=candidates, seen=seen, rounds=rounds)

    def _step_select(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        candidates = _append_unique([], [int(x) for x in state.get("candidates") or []])
        if not candidates:
            no_filters = self._mode(job) == qc.QuestionMode.all and not self._selection(job).has_filters
            code = NO_QUESTIONS_FOUND if no_filters else NO_QUESTIONS_FOUND_AFTER_FILTER
            self._fail(job, code, ERROR_MESSAGES[code])
            return

        max_questions = int(state["max_questions"])
        selected = select_random(candidates, max_questions) if len(candidates) > max_questions else candidates
        self._save(job, state, phase="create", selected=selected)
        self._progress(job, JobStatus.selecting_questions, 60, MSG_SELECTING)

    def _step_create(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        self._save(job, state, phase="materialize")
        self._progress(job, JobStatus.creating_quiz, 80, MSG_CREATING)

    def _step_materialize(self, db: Session, job: QuizCreationJob, state: Dict[str, Any]) -> None:
        # Quiz and session are written in the same commit as the job update
        if job.quiz_id is not None:
            self._complete(job, int(job.question_count or 0))
            return

        data = self._input(job)
        selected = [int(x) for x in state.get("selected") or []]
        tenant_id = self._tenant(db, job)
        test_mode = str(data.get("test_mode") or "study")

        quiz = CustomQuiz(
            tenant_id=tenant_id,
            author_id=int(job.user_id),
            name=str(data.get("name") or f"Custom Quiz - {_now().strftime('%d/%m/%Y')}"),
            description=str(data.get("description") or f"Custom quiz with {len(selected)} questions"),
            question_ids=selected,
            test_mode=test_mode,
            question_mode=self._mode(job).value,
            selected_themes=list(data.get("selected_themes") or []),
            selected_subthemes=list(data.get("selected_subthemes") or []),
            selected_groups=list(data.get("selected_groups") or []),
        )
        db.add(quiz)
        db.flush()

        db.add(
            QuizSession(
                quiz_id=int(quiz.id),
                user_id=int(job.user_id),
                tenant_id=tenant_id,
                mode=test_mode,
                current_question_index=0,
                answers=[],
                answer_feedback=[],
                is_complete=False,
            )
        )
        job.quiz_id = int(quiz.id)
        self._complete(job, len(selected))

    def _complete(self, job: QuizCreationJob, question_count: int) -> None:
        job.question_count = int(question_count)
        job.status = JobStatus.completed.value
        job.progress = 100
        job.progress_message = MSG_DONE
        job.completed_at = _now()
