"""Evidence command classes."""

import json
import random
from typing import Optional, Sequence

import click

from cli.core.base import BaseCommand, BaseSchemaCommand
from cli.core.utils import EXIT_SUCCESS, EXIT_NOT_FOUND
from cli.evidence.display import display_relation_graph, display_stored_files, display_version
from lala.anonymize import IdentityMap, Pseudonymizer, RelationGraphWalker
from lala.anonymize.relations import PRIMARY_ID_COLUMN, unique_ids
from lala.evidence import EvidenceKind, FileEvidenceStore
from lala.models import ModelVersion
from lala.schemas import ModelVersionSchema

# Files written outside of a model version run are filed under version 0.
STANDALONE_VERSION_ID = 0


class RelatedTablesCommand(BaseSchemaCommand):
    """Discover the tables related to a set of root rows."""

    def execute(self, table: str, ids: Sequence[int]) -> int:
        try:
            schema = self.get_schema()
            if not self.table_exists(schema, table):
                self.console.print(f"❌ Table not found: {table}", style="bold red")
                return EXIT_NOT_FOUND

            graph = RelationGraphWalker(schema, schema).discover(table, ids)
            display_relation_graph(self.ctx, table, graph)
            return EXIT_SUCCESS
        except Exception as e:
            return self.handle_exception(e)


class CollectRelatedCommand(BaseSchemaCommand):
    """Pseudonymize every table related to a set of root rows and write one CSV per table."""

    def execute(self, table: str, ids: Sequence[int], output_dir: Optional[str] = None,
                seed: Optional[int] = None) -> int:
        try:
            schema = self.get_schema()
            if not self.table_exists(schema, table):
                self.console.print(f"❌ Table not found: {table}", style="bold red")
                return EXIT_NOT_FOUND

            config = self.ctx.config
            rng = random.Random(seed)
            graph = RelationGraphWalker(schema, schema).discover(table, ids)

            rows_by_table = {}
            for name, relevant_ids in graph.items():
                rows = schema.fetch_rows_by_ids(name, PRIMARY_ID_COLUMN, relevant_ids)
                if rows:
                    rows_by_table[name] = rows

            if not rows_by_table:
                self.console.print(f"❌ No rows found in {table} for the given ids", style="bold red")
                return EXIT_NOT_FOUND

            idmaps = {
                name: IdentityMap.create_from_ids(
                    unique_ids(row[PRIMARY_ID_COLUMN] for row in rows),
                    entity_type=name,
                    rng=rng,
                    floor=config.pseudonym_floor,
                    multiplier_range=config.pseudonym_multiplier,
                )
                for name, rows in rows_by_table.items()
            }
            pseudonymizer = Pseudonymizer(rng=rng, min_anonymity_set=config.min_anonymity_set)

            kind = EvidenceKind.RELATED_DATA_ANONYMIZED
            payloads = {}
            for name, rows in rows_by_table.items():
                data = kind.collect({
                    'table_name': name,
                    'rows': rows,
                    'idmaps': idmaps,
                    'pseudonymizer': pseudonymizer,
                })
                payloads[name] = kind.serialize(data)

            store = FileEvidenceStore(output_dir or config.evidence_dir)
            first_id = store.next_evidence_id(STANDALONE_VERSION_ID, kind.value)
            locations = {}
            try:
                for evidence_id, (name, payload) in enumerate(payloads.items(), first_id):
                    locations[name] = store.put(STANDALONE_VERSION_ID, kind.value, evidence_id, payload,
                                                kind.file_type, name)
            except Exception:
                for location in locations.values():
                    store.delete(location)
                raise

            self.console.print(f"✅ Wrote {len(locations)} pseudonymized table(s):", style="green bold")
            display_stored_files(self.ctx, locations)
            return EXIT_SUCCESS
        except Exception as e:
            return self.handle_exception(e)


class ShowVersionCommand(BaseCommand):
    """Show a model version and its evidence."""

    def execute(self, version_id: int, as_json: bool = False) -> int:
        try:
            version = ModelVersion.get_by_id(self.session, version_id)
            if version is None:
                self.console.print(f"❌ Model version not found: {version_id}", style="bold red")
                return EXIT_NOT_FOUND

            if as_json:
                click.echo(json.dumps(ModelVersionSchema().dump(version), indent=2, default=str))
            else:
                display_version(self.ctx, version)
            return EXIT_SUCCESS
        except Exception as e:
            return self.handle_exception(e)
