"""Tests for table clearing, identity carry-over and index maintenance."""

import psycopg2
import pytest

from shipment_etl.errors import IndexRebuildError
from shipment_etl.table_ops import IndexDescriptor, IndexManager, TableManager

SEQUENCE = "public.shipments_id_seq"


def with_identity(fake_db, last_value=57):
    fake_db.respond("pg_get_serial_sequence", [(SEQUENCE,)])
    fake_db.respond("pg_sequence_last_value", [(last_value,)])


def test_truncate_captures_identity_when_preserving(fake_db):
    with_identity(fake_db)

    previous = TableManager(fake_db).truncate_or_delete("shipments", preserve_identity=True)

    assert previous == 57
    assert fake_db.executed('TRUNCATE TABLE "public"."shipments" RESTART IDENTITY;')
    assert fake_db.position("pg_sequence_last_value") < fake_db.position("TRUNCATE")


def test_truncate_without_preserve_skips_identity(fake_db):
    with_identity(fake_db)

    previous = TableManager(fake_db).truncate_or_delete("shipments")

    assert previous is None
    assert not fake_db.executed("pg_get_serial_sequence")


def test_truncate_failure_falls_back_to_delete(fake_db):
    fake_db.fail_on("TRUNCATE", psycopg2.Error("cannot truncate a table referenced in a foreign key"))

    TableManager(fake_db).truncate_or_delete("dbo.shipments")

    assert fake_db.executed("SET LOCAL statement_timeout = 0;")
    assert fake_db.executed('DELETE FROM "dbo"."shipments";')
    assert fake_db.position("SET LOCAL") < fake_db.position("DELETE")


def test_restore_identity_reseeds_sequence(fake_db):
    with_identity(fake_db)

    TableManager(fake_db).restore_identity("shipments", 57)

    assert fake_db.params_for("setval") == [(SEQUENCE, 57)]
    assert fake_db.commits >= 1


def test_restore_identity_none_is_noop(fake_db):
    TableManager(fake_db).restore_identity("shipments", None)

    assert fake_db.statements == []


def test_table_without_identity_reports_none(fake_db):
    assert TableManager(fake_db).current_identity("shipments") is None


def test_create_statement_is_idempotent():
    plain = IndexDescriptor("ix_model", 'CREATE INDEX ix_model ON public.shipments USING btree ("機種")')
    unique = IndexDescriptor("ux_order", "CREATE UNIQUE INDEX ux_order ON public.shipments USING btree (order_no)")

    assert plain.create_statement().startswith("CREATE INDEX IF NOT EXISTS ix_model ON")
    assert unique.create_statement().startswith("CREATE UNIQUE INDEX IF NOT EXISTS ux_order ON")


def test_list_non_primary_reads_index_definitions(fake_db):
    fake_db.respond("pg_get_indexdef", [("ix_model", "CREATE INDEX ix_model ON public.shipments (x)")])

    indexes = IndexManager(fake_db).list_non_primary("shipments")

    assert indexes == [IndexDescriptor("ix_model", "CREATE INDEX ix_model ON public.shipments (x)")]
    assert fake_db.params_for("pg_get_indexdef") == [("public", "shipments")]


def test_disable_and_rebuild_are_single_batches(fake_db):
    manager = IndexManager(fake_db)
    indexes = [
        IndexDescriptor("ix_a", "CREATE INDEX ix_a ON public.shipments USING btree (a)"),
        IndexDescriptor("ix_b", "CREATE INDEX ix_b ON public.shipments USING btree (b)"),
    ]

    manager.disable("shipments", indexes)
    manager.rebuild("shipments", indexes)

    assert len(fake_db.statements) == 2
    drop, create = fake_db.statements[0][0], fake_db.statements[1][0]
    assert drop == 'DROP INDEX IF EXISTS "public"."ix_a"; DROP INDEX IF EXISTS "public"."ix_b";'
    assert create.startswith("SET LOCAL statement_timeout = 0; ")
    assert create.count("CREATE INDEX IF NOT EXISTS") == 2


def test_empty_index_list_is_noop(fake_db):
    manager = IndexManager(fake_db)

    manager.disable("shipments", [])
    manager.rebuild("shipments", [])

    assert fake_db.statements == []


def test_rebuild_failure_names_indexes(fake_db):
    fake_db.fail_on("CREATE INDEX", psycopg2.Error("could not create unique index"))
    indexes = [IndexDescriptor("ix_a", "CREATE INDEX ix_a ON public.shipments (a)")]

    with pytest.raises(IndexRebuildError) as excinfo:
        IndexManager(fake_db).rebuild("shipments", indexes)

    assert excinfo.value.index_names == ["ix_a"]
    assert fake_db.rollbacks == 1
