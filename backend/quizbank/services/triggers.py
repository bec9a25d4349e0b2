"""Keep aggregates in sync with document writes.

Every write to a registered table goes through `DocumentWriter`, which fires
the table's triggers with `(old, new)` snapshots:

  insert  -> old is None
  delete  -> new is None
  update  -> both set; skipped entirely when no key field changed

Aggregate failures never abort the document write. Missing/duplicate keys
are expected after drift and are logged at info level; anything else is
logged as a warning.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from quizbank.services.aggregate_store import AggregateKeyExistsError, AggregateKeyMissingError, AggregateStore
from quizbank.services.aggregates import ALL_AGGREGATES, AggregateDefinition, Doc

logger = logging.getLogger(__name__)


def snapshot(row: Any) -> Doc:
    mapper = sa_inspect(row).mapper
    return {attr.key: getattr(row, attr.key) for attr in mapper.column_attrs}


class AggregateTrigger:
    def __init__(self, definition: AggregateDefinition):
        self.definition = definition

    def handle(self, store: AggregateStore, old: Optional[Doc], new: Optional[Doc]) -> None:
        d = self.definition
        if old is not None and new is not None and not d.key_changed(old, new):
            return
        if old is not None:
            self._remove(store, old)
        if new is not None:
            self._add(store, new)

    def _remove(self, store: AggregateStore, doc: Doc) -> None:
        d = self.definition
        namespace = d.namespace_for(doc)
        if namespace is None:
            return
        try:
            store.delete(d.name, namespace, d.doc_id(doc))
        except AggregateKeyMissingError as e:
            logger.info("aggregate delete skipped: %s", e)

    def _add(self, store: AggregateStore, doc: Doc) -> None:
        d = self.definition
        namespace = d.namespace_for(doc)
        if namespace is None:
            return
        try:
            store.insert(d.name, namespace, d.doc_id(doc))
        except AggregateKeyExistsError as e:
            logger.info("aggregate insert skipped: %s", e)


class TriggerEngine:
    def __init__(self, store: AggregateStore):
        self.store = store
        self._registry: Dict[str, List[AggregateTrigger]] = {}

    def register(self, table: str, trigger: AggregateTrigger) -> None:
        self._registry.setdefault(table, []).append(trigger)

    def fire(self, table: str, old: Optional[Doc], new: Optional[Doc]) -> None:
        for trigger in self._registry.get(table, []):
            try:
                trigger.handle(self.store, old, new)
            except Exception as e:
                logger.warning("aggregate trigger %s failed on %s: %s", trigger.definition.name, table, e)


def build_trigger_engine(store: AggregateStore) -> TriggerEngine:
    engine = TriggerEngine(store)
    for definition in ALL_AGGREGATES:
        engine.register(definition.table, AggregateTrigger(definition))
    return engine


class DocumentWriter:
    """insert / patch / delete on a SQLAlchemy session, firing triggers after each flush.

    Commit is left to the caller.
    """

    def __init__(self, db: Session, engine: TriggerEngine):
        self.db = db
        self.engine = engine

    def insert(self, row: Any) -> Any:
        self.db.add(row)
        self.db.flush()
        self.engine.fire(row.__tablename__, None, snapshot(row))
        return row

    def patch(self, row: Any, **changes: Any) -> Any:
        old = snapshot(row)
        for field, value in changes.items():
            setattr(row, field, value)
        self.db.flush()
        self.engine.fire(row.__tablename__, old, snapshot(row))
        return row

    def delete(self, row: Any) -> None:
        old = snapshot(row)
        self.db.delete(row)
        self.db.flush()
        self.engine.fire(row.__tablename__, old, None)
