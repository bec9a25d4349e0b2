from quizbank.models import UserQuestionStat
from quizbank.services import aggregate_queries
from quizbank.services.triggers import AggregateTrigger, TriggerEngine
from quizbank.services.aggregates import TOTAL_QUESTION_COUNT


def test_question_insert_populates_every_matching_namespace(store, taxonomy, make_question, tenant):
    make_question(taxonomy["T1"], taxonomy["S1"], taxonomy["G1"])
    make_question(taxonomy["T1"])  # no subtheme, no group

    assert aggregate_queries.get_total_question_count(store, tenant.id) == 2
    assert aggregate_queries.get_question_count_by_theme(store, tenant.id, taxonomy["T1"].id) == 2
    assert aggregate_queries.get_question_count_by_subtheme(store, tenant.id, taxonomy["S1"].id) == 1
    assert aggregate_queries.get_question_count_by_group(store, tenant.id, taxonomy["G1"].id) == 1


def test_title_patch_touches_no_aggregate(db, writer, fake_redis, taxonomy, make_question):
    q = make_question(taxonomy["T1"], taxonomy["S1"])
    fake_redis.calls.clear()

    writer.patch(q, title="Renamed", normalized_title="renamed")
    db.commit()

    assert fake_redis.mutations() == []


def test_theme_move_is_one_delete_and_one_insert(db, writer, fake_redis, store, taxonomy, make_question, tenant):
    q = make_question(taxonomy["T1"])
    fake_redis.calls.clear()

    writer.patch(q, theme_id=taxonomy["T2"].id)
    db.commit()

    by_theme_t1 = f"test:question_count_by_theme:{tenant.id}:{taxonomy['T1'].id}"
    by_theme_t2 = f"test:question_count_by_theme:{tenant.id}:{taxonomy['T2'].id}"
    calls = fake_redis.mutations()
    assert [c for c in calls if c[1] == by_theme_t1] == [("zrem", by_theme_t1, (str(q.id),))]
    assert [c for c in calls if c[1] == by_theme_t2] == [("zadd", by_theme_t2, (str(q.id),))]
    assert [c for c in calls if "total_question_count" in c[1]] == []
    assert aggregate_queries.get_total_question_count(store, tenant.id) == 1


def test_delete_of_missing_entry_is_tolerated(db, writer, store, taxonomy, make_question, tenant):
    q = make_question(taxonomy["T1"], taxonomy["S1"])
    # drift: the entry vanished from the store
    store.delete("total_question_count", str(tenant.id), q.id)

    writer.delete(q)
    db.commit()

    assert aggregate_queries.get_total_question_count(store, tenant.id) == 0
    assert aggregate_queries.get_question_count_by_subtheme(store, tenant.id, taxonomy["S1"].id) == 0


def test_failing_trigger_does_not_stop_the_others(store):
    class Boom(AggregateTrigger):
        def handle(self, store, old, new):
            raise RuntimeError("boom")

    engine = TriggerEngine(store)
    engine.register("questions", Boom(TOTAL_QUESTION_COUNT))
    engine.register("questions", AggregateTrigger(TOTAL_QUESTION_COUNT))

    engine.fire("questions", None, {"id": 7, "tenant_id": 1})

    assert store.count("total_question_count", "1") == 1


def test_stat_flags_drive_user_aggregates(db, writer, store, taxonomy, make_question, tenant):
    q = make_question(taxonomy["T1"], taxonomy["S2"])
    stat = UserQuestionStat(
        user_id=1,
        question_id=q.id,
        tenant_id=tenant.id,
        has_answered=True,
        is_incorrect=False,
        theme_id=q.theme_id,
        subtheme_id=q.subtheme_id,
    )
    writer.insert(stat)
    db.commit()
    assert aggregate_queries.get_user_mode_counts(store, 1) == {"answered": 1, "incorrect": 0, "bookmarked": 0}

    writer.patch(stat, is_incorrect=True)
    db.commit()
    assert aggregate_queries.get_user_mode_counts(store, 1)["incorrect"] == 1
    assert store.count("incorrect_by_subtheme_by_user", f"1:{taxonomy['S2'].id}") == 1

    writer.patch(stat, is_incorrect=False)
    db.commit()
    assert aggregate_queries.get_user_mode_counts(store, 1)["incorrect"] == 0


def test_repair_rebuilds_question_aggregates(db, store, fake_redis, taxonomy, make_question, tenant):
    for _ in range(3):
        make_question(taxonomy["T1"], taxonomy["S1"])
    fake_redis.zsets.clear()

    out = aggregate_queries.repair_question_aggregates(db, store, tenant.id, page_size=2)

    assert out["questions"] == 3
    assert aggregate_queries.get_total_question_count(store, tenant.id) == 3
    assert aggregate_queries.get_question_count_by_subtheme(store, tenant.id, taxonomy["S1"].id) == 3
    assert aggregate_queries.get_question_count_by_group(store, tenant.id, taxonomy["G1"].id) == 0


def test_random_question_queries_stay_inside_their_node(store, taxonomy, make_question, tenant):
    in_s1 = {make_question(taxonomy["T1"], taxonomy["S1"]).id for _ in range(4)}
    in_s3 = {make_question(taxonomy["T2"], taxonomy["S3"]).id for _ in range(3)}

    assert set(aggregate_queries.get_random_questions_by_subtheme(store, tenant.id, taxonomy["S1"].id, 10)) == in_s1
    assert set(aggregate_queries.get_random_questions_by_theme(store, tenant.id, taxonomy["T2"].id, 2)) <= in_s3
    assert aggregate_queries.get_random_questions_by_group(store, tenant.id, taxonomy["G1"].id, 5) == []
    assert len(aggregate_queries.get_random_questions(store, tenant.id, 5)) == 5
