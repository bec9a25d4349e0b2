import pytest

from quizbank.core.config import settings
from quizbank.models import CustomQuiz, QuizCreationJob, QuizSession
from quizbank.services import question_collection as qc
from quizbank.services import quiz_job_service, user_stats_service
from quizbank.services.quiz_workflow import JobNotFoundError, QuizCreationWorkflow


def _job(db, tenant, **payload):
    data = {"name": "Simulado", "description": "", "test_mode": "study", "question_mode": "all"}
    data.update(payload)
    return quiz_job_service.create_job(db, user_id=1, payload=data, tenant_id=tenant.id)


def _statuses(db, workflow, job_id):
    seen = []
    while True:
        job = workflow.advance(db, job_id)
        if not seen or seen[-1] != job.status:
            seen.append(job.status)
        if job.status in {"completed", "failed"}:
            return job, seen


def test_trauma_unanswered_scenario(db, writer, store, taxonomy, make_question, tenant):
    t1, s1, s2 = taxonomy["T1"], taxonomy["S1"], taxonomy["S2"]
    upper = [make_question(t1, s1).id for _ in range(5)]
    lower = [make_question(t1, s2).id for _ in range(5)]
    make_question(taxonomy["T2"], taxonomy["S3"])
    answered = [upper[0], upper[3], lower[2]]
    for qid in answered:
        user_stats_service.record_answer(db, writer, user_id=1, question_id=qid, is_correct=True)

    job = _job(
        db,
        tenant,
        question_mode="unanswered",
        num_questions=20,
        selected_themes=[t1.id],
        subtheme_to_theme={str(s1.id): t1.id, str(s2.id): t1.id},
    )
    job, seen = _statuses(db, QuizCreationWorkflow(store), job.id)

    assert seen == ["collecting_questions", "selecting_questions", "creating_quiz", "completed"]
    assert job.progress == 100
    assert job.progress_message == "Quiz criado com sucesso!"
    assert job.question_count == 7

    quiz = db.get(CustomQuiz, job.quiz_id)
    assert sorted(quiz.question_ids) == sorted(set(upper + lower) - set(answered))
    assert quiz.question_mode == "unanswered"

    session = db.query(QuizSession).filter(QuizSession.quiz_id == quiz.id).one()
    assert session.user_id == 1
    assert session.current_question_index == 0
    assert session.answers == [] and session.answer_feedback == []
    assert session.is_complete is False


def test_empty_bank_fails_with_no_questions_found(db, store, tenant):
    job = _job(db, tenant)
    job = QuizCreationWorkflow(store).run(db, job.id)

    assert job.status == "failed"
    assert job.error == "NO_QUESTIONS_FOUND"
    assert "Nenhuma questão encontrada" in job.error_message
    assert job.quiz_id is None
    assert db.query(CustomQuiz).count() == 0


def test_empty_filtered_result_fails_after_filter(db, store, taxonomy, make_question, tenant):
    make_question(taxonomy["T1"], taxonomy["S1"])
    job = _job(db, tenant, question_mode="incorrect", selected_themes=[taxonomy["T1"].id])

    job = QuizCreationWorkflow(store).run(db, job.id)

    assert job.status == "failed"
    assert job.error == "NO_QUESTIONS_FOUND_AFTER_FILTER"


def test_result_is_capped_at_max_questions(db, store, taxonomy, make_question, tenant):
    ids = [make_question(taxonomy["T2"], taxonomy["S3"]).id for _ in range(130)]
    job = _job(db, tenant, num_questions=500, selected_subthemes=[taxonomy["S3"].id])

    job = QuizCreationWorkflow(store, page_size=50).run(db, job.id)

    assert job.status == "completed"
    assert job.question_count == settings.QUIZ_MAX_QUESTIONS
    quiz = db.get(CustomQuiz, job.quiz_id)
    assert len(quiz.question_ids) == 120
    assert len(set(quiz.question_ids)) == 120
    assert set(quiz.question_ids) <= set(ids)
    assert job.step_state_json["selected"] == quiz.question_ids


def test_hierarchy_collection_resumes_across_steps_without_duplicates(db, store, taxonomy, make_question, tenant):
    t1, s1, g1 = taxonomy["T1"], taxonomy["S1"], taxonomy["G1"]
    in_g1 = [make_question(t1, s1, g1).id for _ in range(3)]
    other_s1 = [make_question(t1, s1).id for _ in range(2)]
    in_s2 = [make_question(t1, taxonomy["S2"]).id for _ in range(3)]

    job = _job(
        db,
        tenant,
        selected_themes=[t1.id],
        selected_subthemes=[s1.id],
        selected_groups=[g1.id],
        group_to_subtheme={str(g1.id): s1.id},
        subtheme_to_theme={str(s1.id): t1.id},
    )
    job = QuizCreationWorkflow(store, page_size=2).run(db, job.id)

    assert job.status == "completed"
    assert job.step_count > 4
    quiz = db.get(CustomQuiz, job.quiz_id)
    # group wins; S1 and T1 are overridden
    assert sorted(quiz.question_ids) == sorted(in_g1)
    assert not set(quiz.question_ids) & set(other_s1 + in_s2)


def test_mode_all_without_filters_draws_from_sampling_aggregate(db, store, taxonomy, make_question, tenant):
    ids = [make_question(taxonomy["T1"]).id for _ in range(6)]
    job = _job(db, tenant, num_questions=4)

    job = QuizCreationWorkflow(store).run(db, job.id)

    quiz = db.get(CustomQuiz, job.quiz_id)
    assert job.status == "completed"
    assert len(quiz.question_ids) == 4
    assert set(quiz.question_ids) <= set(ids)


def test_aggregate_strategy_for_mode_all(db, store, taxonomy, make_question, tenant, monkeypatch):
    monkeypatch.setattr(settings, "QUIZ_ALL_MODE_STRATEGY", "aggregate")
    ids = [make_question(taxonomy["T2"], taxonomy["S3"]).id for _ in range(4)]
    make_question(taxonomy["T1"])
    job = _job(db, tenant, selected_themes=[taxonomy["T2"].id])

    job = QuizCreationWorkflow(store).run(db, job.id)

    assert job.status == "completed"
    assert sorted(db.get(CustomQuiz, job.quiz_id).question_ids) == sorted(ids)


def test_aggregate_strategy_pages_complement_across_steps(db, store, taxonomy, make_question, tenant, monkeypatch):
    monkeypatch.setattr(settings, "QUIZ_ALL_MODE_STRATEGY", "aggregate")
    t1, s1, g1, g2 = taxonomy["T1"], taxonomy["S1"], taxonomy["G1"], taxonomy["G2"]
    in_g1 = [make_question(t1, s1, g1).id for _ in range(3)]
    in_g2 = make_question(t1, s1, g2).id
    loose = [make_question(t1, s1).id for _ in range(11)]
    make_question(taxonomy["T2"], taxonomy["S3"])

    job = _job(
        db,
        tenant,
        selected_subthemes=[s1.id],
        selected_groups=[g1.id],
        group_to_subtheme={str(g1.id): s1.id},
        subtheme_to_theme={str(s1.id): t1.id},
    )
    workflow = QuizCreationWorkflow(store, page_size=5)
    job = workflow.advance(db, job.id)
    assert job.step_state_json["phase"] == "random_aggregate"

    growth = []
    while job.step_state_json["phase"] == "random_aggregate":
        before = len(job.step_state_json["candidates"])
        job = workflow.advance(db, job.id)
        growth.append(len(job.step_state_json["candidates"]) - before)
    # group draw, then the 12-row complement in pages of 5
    assert growth == [3, 5, 5, 2]

    job = workflow.run(db, job.id)
    assert job.status == "completed"
    quiz_ids = db.get(CustomQuiz, job.quiz_id).question_ids
    assert sorted(quiz_ids) == sorted(in_g1 + [in_g2] + loose)
    assert len(quiz_ids) == len(set(quiz_ids))


def test_incorrect_mode_without_filters_scans_modal_table(db, writer, store, taxonomy, make_question, tenant):
    qs = [make_question(taxonomy["T1"]).id for _ in range(5)]
    user_stats_service.record_answer(db, writer, user_id=1, question_id=qs[0], is_correct=False)
    user_stats_service.record_answer(db, writer, user_id=1, question_id=qs[1], is_correct=True)
    user_stats_service.record_answer(db, writer, user_id=1, question_id=qs[2], is_correct=False)
    user_stats_service.record_answer(db, writer, user_id=2, question_id=qs[3], is_correct=False)

    job = _job(db, tenant, question_mode="incorrect")
    job = QuizCreationWorkflow(store, page_size=1).run(db, job.id)

    assert job.status == "completed"
    assert sorted(db.get(CustomQuiz, job.quiz_id).question_ids) == [qs[0], qs[2]]


def test_bookmarked_mode_with_filters_intersects(db, writer, store, taxonomy, make_question, tenant):
    s1_q = make_question(taxonomy["T1"], taxonomy["S1"]).id
    s2_q = make_question(taxonomy["T1"], taxonomy["S2"]).id
    user_stats_service.toggle_bookmark(db, writer, user_id=1, question_id=s1_q)
    user_stats_service.toggle_bookmark(db, writer, user_id=1, question_id=s2_q)

    job = _job(
        db,
        tenant,
        question_mode="bookmarked",
        selected_subthemes=[taxonomy["S2"].id],
        subtheme_to_theme={str(taxonomy["S2"].id): taxonomy["T1"].id},
    )
    job = QuizCreationWorkflow(store).run(db, job.id)

    assert db.get(CustomQuiz, job.quiz_id).question_ids == [s2_q]


def test_unanswered_without_filters_uses_iterative_sampling(db, writer, store, taxonomy, make_question, tenant, monkeypatch):
    monkeypatch.setattr(settings, "QUIZ_SAMPLING_BATCH_SIZE", 3)
    qs = [make_question(taxonomy["T1"]).id for _ in range(9)]
    for qid in qs[:4]:
        user_stats_service.record_answer(db, writer, user_id=1, question_id=qid, is_correct=True)

    job = _job(db, tenant, question_mode="unanswered", num_questions=50)
    job = QuizCreationWorkflow(store).run(db, job.id)

    assert job.status == "completed"
    assert sorted(db.get(CustomQuiz, job.quiz_id).question_ids) == sorted(qs[4:])
    assert job.step_state_json["rounds"] >= 3


def test_sampling_stops_at_max_rounds(db, writer, store, taxonomy, make_question, tenant, monkeypatch):
    monkeypatch.setattr(settings, "QUIZ_SAMPLING_BATCH_SIZE", 2)
    monkeypatch.setattr(settings, "QUIZ_SAMPLING_MAX_ROUNDS", 2)
    qs = [make_question(taxonomy["T1"]).id for _ in range(30)]
    for qid in qs[:28]:
        user_stats_service.record_answer(db, writer, user_id=1, question_id=qid, is_correct=True)

    job = _job(db, tenant, question_mode="unanswered", num_questions=20)
    job = QuizCreationWorkflow(store).run(db, job.id)

    assert job.step_state_json["rounds"] == 2
    assert len(job.step_state_json["seen"]) == 4
    assert job.status in {"completed", "failed"}
    if job.status == "failed":
        assert job.error == "NO_QUESTIONS_FOUND_AFTER_FILTER"
    else:
        assert set(db.get(CustomQuiz, job.quiz_id).question_ids) <= set(qs[28:])


def test_step_exception_marks_workflow_error(db, store, taxonomy, make_question, tenant, monkeypatch):
    make_question(taxonomy["T1"])

    def _boom(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(qc, "collect_hierarchy_page", _boom)
    job = _job(db, tenant, selected_themes=[taxonomy["T1"].id])

    job = QuizCreationWorkflow(store).run(db, job.id)

    assert job.status == "failed"
    assert job.error == "WORKFLOW_ERROR"
    assert job.error_message == "database went away"


def test_materialize_step_does_not_create_a_second_quiz(db, store, taxonomy, make_question, tenant):
    make_question(taxonomy["T1"])
    workflow = QuizCreationWorkflow(store)
    job = _job(db, tenant)
    while job.step_state_json.get("phase") != "materialize":
        job = workflow.advance(db, job.id)

    quiz = CustomQuiz(
        tenant_id=tenant.id,
        author_id=1,
        name="already there",
        description="",
        question_ids=[1],
        test_mode="study",
        question_mode="all",
    )
    db.add(quiz)
    db.flush()
    job.quiz_id = quiz.id
    job.question_count = 1
    db.commit()

    job = workflow.advance(db, job.id)

    assert job.status == "completed"
    assert db.query(CustomQuiz).count() == 1


def test_terminal_jobs_are_left_alone_and_missing_jobs_raise(db, store, tenant):
    job = _job(db, tenant)
    workflow = QuizCreationWorkflow(store)
    job = workflow.run(db, job.id)
    steps = job.step_count

    assert workflow.advance(db, job.id).step_count == steps
    with pytest.raises(JobNotFoundError):
        workflow.advance(db, 999)


def test_default_tenant_is_resolved_when_job_has_none(db, store, taxonomy, make_question, tenant):
    make_question(taxonomy["T1"])
    job = quiz_job_service.create_job(
        db, user_id=1, payload={"name": "x", "question_mode": "all", "test_mode": "exam"}, tenant_id=None
    )
    assert job.tenant_id == tenant.id

    job = QuizCreationWorkflow(store).run(db, job.id)
    quiz = db.get(CustomQuiz, job.quiz_id)
    assert quiz.tenant_id == tenant.id
    assert db.query(QuizSession).filter(QuizSession.quiz_id == quiz.id).one().mode == "exam"
    assert db.get(QuizCreationJob, job.id).completed_at is not None
