"""Integration tests for the CLI."""
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner
from ebooklib import epub

from conftest import StubService
from etrans.cli import default_task_id, main
from etrans.config import DEFAULTS


@pytest.fixture
def mock_config(tmp_path):
    """Mock load_config to return DEFAULTS with a temporary cache directory."""
    config = DEFAULTS.copy()
    config["cache_dir"] = str(tmp_path / "cache")
    with patch('etrans.cli.load_config', return_value=config) as mock_load:
        yield mock_load


@pytest.fixture
def stub_provider():
    """Replace the provider client built by the CLI."""
    service = StubService()
    with patch('etrans.pipeline.get_service', return_value=service):
        yield service


class TestCLI:
    """Test CLI interface with Click CliRunner."""

    def test_help_option(self):
        result = CliRunner().invoke(main, ['--help'])
        assert result.exit_code == 0
        assert '--target-lang' in result.output
        assert '--task-id' in result.output

    def test_no_input_file_error(self, mock_config):
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 1
        assert 'Please specify an EPUB file' in result.output

    def test_setup_flag(self):
        with patch('etrans.config.run_setup') as mock_setup:
            result = CliRunner().invoke(main, ['--setup'])
        assert result.exit_code == 0
        mock_setup.assert_called_once()

    def test_nonexistent_file_error(self, mock_config):
        result = CliRunner().invoke(main, ['nonexistent.epub', '-lo', 'fr'])
        assert result.exit_code != 0

    def test_country_code_is_rejected(self, minimal_epub, mock_config, stub_provider):
        result = CliRunner().invoke(main, [str(minimal_epub), '-lo', 'kr'])
        assert result.exit_code == 1
        assert 'country code' in result.output
        assert stub_provider.calls == []

    def test_unknown_provider_is_rejected(self, minimal_epub, mock_config):
        result = CliRunner().invoke(main, [str(minimal_epub), '-lo', 'fr', '-p', 'babelfish'])
        assert result.exit_code == 2

    def test_unsupported_format(self, tmp_path, mock_config, stub_provider):
        pdf = tmp_path / "book.pdf"
        pdf.write_bytes(b"%PDF-1.4")
        result = CliRunner().invoke(main, [str(pdf), '-lo', 'fr'])
        assert result.exit_code == 1
        assert 'PDF' in result.output

    def test_valid_epub_translation(self, minimal_epub, mock_config, stub_provider, tmp_path):
        output = tmp_path / "out.epub"
        result = CliRunner().invoke(main, [str(minimal_epub), '-lo', 'fr', '-o', str(output)])

        assert result.exit_code == 0, result.output
        assert output.exists()
        assert 'Done' in result.output
        assert 'Hello World' in stub_provider.calls

        book = epub.read_epub(str(output))
        assert book.get_metadata('DC', 'language')[0][0] == 'fr'

    def test_output_path_default(self, minimal_epub, mock_config, stub_provider):
        result = CliRunner().invoke(main, [str(minimal_epub), '-lo', 'fr'])

        assert result.exit_code == 0, result.output
        assert (Path(minimal_epub).parent / "test.fr.epub").exists()

    def test_second_run_reuses_progress(self, minimal_epub, mock_config, stub_provider, tmp_path):
        output = tmp_path / "out.epub"
        runner = CliRunner()

        first = runner.invoke(main, [str(minimal_epub), '-lo', 'fr', '-o', str(output)])
        assert first.exit_code == 0, first.output
        first_calls = len(stub_provider.calls)
        assert first_calls > 0

        second = runner.invoke(main, [str(minimal_epub), '-lo', 'fr', '-o', str(output)])
        assert second.exit_code == 0, second.output
        assert len(stub_provider.calls) == first_calls

    def test_task_id_option_names_the_progress_file(self, minimal_epub, mock_config, stub_provider, tmp_path):
        result = CliRunner().invoke(main, [str(minimal_epub), '-lo', 'fr', '--task-id', 'mybook'])

        assert result.exit_code == 0, result.output
        assert (tmp_path / "cache" / "progress_mybook.json").exists()

    def test_monolingual_mode_option(self, minimal_epub, mock_config, stub_provider, tmp_path):
        output = tmp_path / "mono.epub"
        result = CliRunner().invoke(main, [str(minimal_epub), '-lo', 'fr', '--mode', 'monolingual', '-o', str(output)])

        assert result.exit_code == 0, result.output
        content = epub.read_epub(str(output)).get_item_with_id('ch1').get_content().decode('utf-8')
        assert 'This is a test paragraph.' not in content

    def test_prune_cache(self, mock_config, tmp_path):
        cache_dir = tmp_path / "cache"
        cache_dir.mkdir()
        (cache_dir / ("0" * 64)).write_text("broken")

        result = CliRunner().invoke(main, ['--prune-cache'])

        assert result.exit_code == 0, result.output
        assert 'Removed 1 expired cache entries' in result.output
        assert not (cache_dir / ("0" * 64)).exists()


def test_default_task_id_is_stable(tmp_path):
    book = tmp_path / "book.epub"
    first = default_task_id(str(book), "fr", "bilingual")

    assert first == default_task_id(str(book), "fr", "bilingual")
    assert first != default_task_id(str(book), "de", "bilingual")
    assert first != default_task_id(str(book), "fr", "monolingual")
    assert first.endswith("-fr-bilingual")


def test_default_task_id_sanitizes_free_form_languages(tmp_path):
    task_id = default_task_id(str(tmp_path / "book.epub"), "Classical Chinese", "bilingual")
    assert " " not in task_id
