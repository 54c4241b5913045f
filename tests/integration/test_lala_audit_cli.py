import csv
import io
import json

import pytest
import yaml
from click.testing import CliRunner
from sqlalchemy.orm import Session

from fixtures.test_config import create_test_engine, populate_lms
from lala.evidence import FileEvidenceStore
from lala.exceptions import EvidenceStorageError
from lala.models import Base, Evidence, ModelConfig, ModelVersion
from lala_audit_cli import cli

pytestmark = pytest.mark.integration


class TestLalaAuditCli:

    @pytest.fixture
    def runner(self):
        return CliRunner()

    @pytest.fixture
    def db_url(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'moodle.db'}"
        engine = create_test_engine(url)
        populate_lms(engine)
        Base.metadata.create_all(engine)
        yield url
        engine.dispose()

    @pytest.fixture
    def config_file(self, tmp_path, db_url):
        path = tmp_path / 'lala.yaml'
        path.write_text(yaml.safe_dump({
            'database': {'url': db_url, 'id_chunk_size': 2},
            'evidence': {'directory': str(tmp_path / 'evidence')},
        }))
        return str(path)

    @pytest.fixture
    def version_id(self, db_url):
        engine = create_test_engine(db_url)
        with Session(engine) as session:
            config = ModelConfig(model_id=9, target='course_dropout', analysis_interval='upcoming_week',
                                 indicators='["indicator_activity"]')
            session.add(config)
            session.flush()
            version = ModelVersion.create_scaffold(session, config, 0.2, name='nightly')
            evidence = Evidence.create_scaffold(session, version.id, 'related_data_anonymized')
            evidence.serialized_file_location = (
                f'/srv/modelversion{version.id}-evidencerelated_data_anonymized{evidence.id}-user.csv'
            )
            evidence.finish()
            version.error = 'Too few distinct ids in user.'
            session.commit()
            version_id = version.id
        engine.dispose()
        return version_id

    def test_cli_help(self, runner):
        result = runner.invoke(cli, ['--help'])
        assert result.exit_code == 0
        assert "Audit learning analytics evidence" in result.output

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ['--config', str(tmp_path / 'nope.yaml'), 'show-version', '1'])
        assert result.exit_code == 2
        assert "Config file not found" in result.output

    def test_related_tables(self, runner, config_file):
        result = runner.invoke(cli, ['--config', config_file, 'related-tables', 'user_enrolments', '100', '101', '102'])
        assert result.exit_code == 0
        for table in ('user_enrolments', 'enrol', 'course', 'role', 'user'):
            assert table in result.output

    def test_related_tables_unknown_table(self, runner, config_file):
        result = runner.invoke(cli, ['--config', config_file, 'related-tables', 'forum_posts', '1'])
        assert result.exit_code == 1
        assert "Table not found" in result.output

    def test_related_tables_requires_ids(self, runner, config_file):
        result = runner.invoke(cli, ['--config', config_file, 'related-tables', 'user'])
        assert result.exit_code != 0

    def test_collect_related(self, runner, config_file, tmp_path):
        out = tmp_path / 'out'
        result = runner.invoke(cli, ['--config', config_file, 'collect-related', 'user_enrolments',
                                     '100', '101', '102', '--output-dir', str(out), '--seed', '5'])
        assert result.exit_code == 0
        assert "Wrote 5 pseudonymized table(s)" in result.output

        files = {p.name.rsplit('-', 1)[1]: p for p in out.iterdir()}
        assert set(files) == {'user_enrolments.csv', 'enrol.csv', 'course.csv', 'role.csv', 'user.csv'}
        assert all(p.name.startswith('modelversion0-evidencerelated_data_anonymized') for p in files.values())

        users = list(csv.DictReader(io.StringIO(files['user.csv'].read_text())))
        assert sorted(row['username'] for row in users) == ['alice', 'bob', 'carol']
        assert not {row['id'] for row in users} & {'1', '2', '3'}

    def test_collect_related_uses_configured_directory(self, runner, config_file, tmp_path):
        result = runner.invoke(cli, ['--config', config_file, 'collect-related', 'user_enrolments', '100', '101', '102'])
        assert result.exit_code == 0
        assert len(list((tmp_path / 'evidence').iterdir())) == 5

    def test_collect_related_anonymity_abort(self, runner, config_file, tmp_path):
        out = tmp_path / 'out'
        result = runner.invoke(cli, ['--config', config_file, 'collect-related', 'user_enrolments',
                                     '100', '104', '--output-dir', str(out)])
        assert result.exit_code == 2
        assert "Too few distinct ids" in result.output
        assert not out.exists() or not list(out.iterdir())

    def test_collect_related_twice_into_same_directory(self, runner, config_file, tmp_path):
        out = tmp_path / 'out'
        first = runner.invoke(cli, ['--config', config_file, 'collect-related', 'user_enrolments',
                                    '100', '101', '102', '--output-dir', str(out)])
        second = runner.invoke(cli, ['--config', config_file, 'collect-related', 'user_enrolments',
                                     '101', '102', '103', '--output-dir', str(out)])
        assert first.exit_code == 0
        assert second.exit_code == 0, second.output

        names = sorted(p.name for p in out.iterdir())
        assert len(names) == 10
        ids = {int(name.split('anonymized', 1)[1].split('-', 1)[0]) for name in names}
        assert ids == set(range(1, 11))

    def test_collect_related_storage_failure_removes_written_files(self, runner, config_file, tmp_path,
                                                                     monkeypatch):
        out = tmp_path / 'out'
        original_put = FileEvidenceStore.put
        calls = []

        def failing_put(self, *args, **kwargs):
            calls.append(args)
            if len(calls) == 3:
                raise EvidenceStorageError("Could not store evidence: disk full")
            return original_put(self, *args, **kwargs)

        monkeypatch.setattr(FileEvidenceStore, 'put', failing_put)
        result = runner.invoke(cli, ['--config', config_file, 'collect-related', 'user_enrolments',
                                     '100', '101', '102', '--output-dir', str(out)])

        assert result.exit_code == 2
        assert "disk full" in result.output
        assert len(calls) == 3
        assert list(out.iterdir()) == []

    def test_collect_related_no_rows(self, runner, config_file):
        result = runner.invoke(cli, ['--config', config_file, 'collect-related', 'user_enrolments', '999'])
        assert result.exit_code == 1
        assert "No rows found" in result.output

    def test_show_version(self, runner, config_file, version_id):
        result = runner.invoke(cli, ['--config', config_file, 'show-version', str(version_id)])
        assert result.exit_code == 0
        assert "Model Version" in result.output
        assert "Failed" in result.output
        assert "related_data_anonymized" in result.output

    def test_show_version_json(self, runner, config_file, version_id):
        result = runner.invoke(cli, ['--config', config_file, 'show-version', str(version_id), '--json'])
        assert result.exit_code == 0

        data = json.loads(result.output)
        assert data['id'] == version_id
        assert data['name'] == 'nightly'
        assert data['error'] == 'Too few distinct ids in user.'
        assert data['evidence'][0]['table_name'] == 'user'

    def test_show_version_not_found(self, runner, config_file):
        result = runner.invoke(cli, ['--config', config_file, 'show-version', '4242'])
        assert result.exit_code == 1
        assert "Model version not found" in result.output
