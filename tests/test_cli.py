import contextlib
import io
import json
import os
import sys
import tempfile
import unittest
from unittest import mock

from rich import box
from typer.testing import CliRunner

from rbstubs.cli import app, main
from rbstubs.cli.config import GLOBAL_OPTIONS
from rbstubs.cli.helpers import get_panel_box
from rbstubs.cli.helpers.output import format_size

from stub_fixtures import write_stub_tree


runner = CliRunner()


class CliTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = os.path.realpath(self._tmp.name)
        self.stubs = write_stub_tree(self.root, "30")
        self._cwd = os.getcwd()

    def tearDown(self):
        os.chdir(self._cwd)
        GLOBAL_OPTIONS.clear()
        self._tmp.cleanup()

    def run_cli(self, *args, root=None):
        return runner.invoke(app, ["--stubs-dir", root or self.root, "--ruby", "3.0", *args])

    def write(self, name, content):
        path = os.path.join(self.root, name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path


class TestMainHelp(CliTestCase):
    def test_no_command_prints_groups(self):
        result = runner.invoke(app, [])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("Stub Files", result.output)
        self.assertIn("ancestors", result.output)

    def test_command_help(self):
        result = runner.invoke(app, ["check", "--help"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn("RS005", result.output)

    def test_unknown_command(self):
        result = runner.invoke(app, ["frobnicate"])
        self.assertEqual(result.exit_code, 2)


class TestQueryCommands(CliTestCase):
    def test_show_method(self):
        result = self.run_cli("show", "String#upcase")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("def String#upcase(*options)", result.output)
        self.assertIn("Upcases characters.", result.output)
        self.assertIn("Defined in string.rb:6", result.output)

    def test_show_markdown(self):
        result = self.run_cli("show", "-m", "String#size")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output, "```ruby\ndef String#size\n```\n\nSame as length.\n")

    def test_show_constant_in_namespace(self):
        result = self.run_cli("show", "-n", "Process::Status", "CLOCK_MONOTONIC")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Process::CLOCK_MONOTONIC = _", result.output)

    def test_show_not_found(self):
        result = self.run_cli("show", "String#nope")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("No declaration found", result.output)

    def test_complete(self):
        result = self.run_cli("complete", "String", "up")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("upcase!", result.output)
        self.assertNotIn("puts", result.output)

    def test_complete_unknown_owner(self):
        result = self.run_cli("complete", "Nope")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Unknown class or module", result.output)

    def test_complete_no_matches(self):
        result = self.run_cli("complete", "String", "zzz")
        self.assertEqual(result.exit_code, 0)
        self.assertIn("No matches", result.output)

    def test_constants(self):
        result = self.run_cli("constants", "-n", "Process", "St")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertLess(result.output.index("Status"), result.output.index("StandardError"))

    def test_ancestors(self):
        result = self.run_cli("ancestors", "Shout")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertLess(result.output.index("Loud"), result.output.index("Comparable"))
        self.assertLess(result.output.index("Comparable"), result.output.index("Kernel"))

    def test_singleton_ancestors(self):
        result = self.run_cli("ancestors", "-s", "Dir")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("#<Class:Dir>", result.output)
        self.assertIn("Forwardable", result.output)


class TestStubSetCommands(CliTestCase):
    def test_stats(self):
        result = self.run_cli("stats")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Ruby 3.0", result.output)
        self.assertIn("Classes", result.output)

    def test_versions(self):
        result = self.run_cli("versions")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("rubystubs30", result.output)
        self.assertIn("installed", result.output)

    def test_export(self):
        path = os.path.join(self.root, "out.json")
        result = self.run_cli("export", "-o", path)
        self.assertEqual(result.exit_code, 0, result.output)
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(data["version"], "3.0")
        self.assertIn("Shout", data["classes"])

    def test_missing_stubs(self):
        empty = os.path.join(self.root, "empty")
        os.makedirs(empty)
        result = self.run_cli("show", "String", root=empty)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Stubs Not Found", result.output)

    def test_bad_ruby_version(self):
        result = runner.invoke(app, ["--stubs-dir", self.root, "--ruby", "latest", "stats"])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid Ruby Version", result.output)

    def test_broken_file_is_reported_and_skipped(self):
        with open(os.path.join(self.stubs, "broken.rb"), "w", encoding="utf-8") as f:
            f.write("class Broken\n")
        result = self.run_cli("show", "String#upcase")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("could not be parsed", result.output)

    def test_init(self):
        os.chdir(self.root)
        result = runner.invoke(app, ["init", "--stubs", "vendor", "--ruby-version", "3.3.1"])
        self.assertEqual(result.exit_code, 0, result.output)
        with open(os.path.join(self.root, ".rbstubs"), encoding="utf-8") as f:
            self.assertEqual(f.read(), "[DEFAULT]\nSTUBS_DIR=vendor\nRUBY_VERSION=3.3\n")

        result = runner.invoke(app, ["init", "--ruby-version", "2.7"])
        self.assertEqual(result.exit_code, 1)

        result = runner.invoke(app, ["init", "-f", "--ruby-version", "2.7"])
        self.assertEqual(result.exit_code, 0, result.output)


class TestStubFileCommands(CliTestCase):
    def test_outline(self):
        result = self.run_cli("outline", os.path.join(self.stubs, "string.rb"))
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Outline (1 scopes, 5 methods)", result.output)
        self.assertIn("def upcase!(*options)", result.output)
        self.assertIn("(private)", result.output)

    def test_outline_syntax_error(self):
        path = self.write("bad.rb", "class A\n  puts 1\nend\n")
        result = self.run_cli("outline", path)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Syntax Error", result.output)

    def test_check_selected_stubs(self):
        result = self.run_cli("check")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("Check Passed", result.output)

    def test_check_warnings_and_strict(self):
        path = self.write("bare.rb", "class A\n  def x; end\nend\n")
        result = self.run_cli("check", path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("RS001", result.output)

        result = self.run_cli("check", "--strict", path)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Check Failed", result.output)

        result = self.run_cli("check", "-i", "RS001", "--strict", path)
        self.assertEqual(result.exit_code, 0, result.output)

    def test_check_unknown_rule(self):
        result = self.run_cli("check", "-s", "RS999")
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Invalid Rule", result.output)

    def test_fmt_prints_canonical_text(self):
        path = self.write("messy.rb", "class A < B\n  def x() end\n  def self.y a, b; end\nend\n")
        result = self.run_cli("fmt", path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertEqual(result.output, "class A < B\n  def x; end\n\n  def self.y(a, b) end\nend\n")

    def test_fmt_check(self):
        result = self.run_cli("fmt", "--check", os.path.join(self.stubs, "string.rb"))
        self.assertEqual(result.exit_code, 0, result.output)

        path = self.write("messy.rb", "class A\n  def x() end\nend\n")
        result = self.run_cli("fmt", "--check", path)
        self.assertEqual(result.exit_code, 1)

    def test_fmt_write(self):
        path = self.write("messy.rb", "class A\n  def x() end\nend\n")
        result = self.run_cli("fmt", "-w", path)
        self.assertEqual(result.exit_code, 0, result.output)
        with open(path, encoding="utf-8") as f:
            self.assertEqual(f.read(), "class A\n  def x; end\nend\n")

    def test_fmt_write_failure_keeps_file(self):
        path = self.write("messy.rb", "class A\n  def x() end\nend\n")
        with mock.patch("rbstubs.stubs.loader.os.replace", side_effect=PermissionError("read-only")):
            result = self.run_cli("fmt", "-w", path)
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Cannot write", result.output)
        self.assertFalse(os.path.exists(path + ".tmp"))
        with open(path, encoding="utf-8") as f:
            self.assertEqual(f.read(), "class A\n  def x() end\nend\n")

    def test_outline_singleton_class_block(self):
        path = self.write("file.rb", "# Files.\nclass File\n  class << self\n    # Cwd.\n    def pwd; end\n  end\nend\n")
        result = self.run_cli("outline", path)
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertIn("class << self", result.output)
        self.assertIn("def pwd", result.output)
        self.assertNotIn("self.pwd", result.output)


class TestUsageErrors(CliTestCase):
    def run_main(self, *args):
        stderr = io.StringIO()
        argv = ["rbstubs", "--stubs-dir", self.root, "--ruby", "3.0", *args]
        with mock.patch.object(sys, "argv", argv), contextlib.redirect_stderr(stderr):
            with self.assertRaises(SystemExit) as raised:
                main()
        return raised.exception.code, stderr.getvalue()

    def test_option_error_shows_command_synopsis(self):
        code, output = self.run_main("complete", "String", "--limit", "many")
        self.assertEqual(code, 2)
        self.assertIn("rbstubs complete [OPTIONS]", output)
        self.assertIn("--limit", output)

    def test_unknown_command_shows_top_level_usage(self):
        code, output = self.run_main("frobnicate")
        self.assertEqual(code, 2)
        self.assertIn("rbstubs [OPTIONS] COMMAND", output)

    def test_usage_errors_from_every_click_namespace(self):
        cli_module = sys.modules["rbstubs.cli.app"]
        for package, exceptions in cli_module._CLICK_NAMESPACES:
            with self.subTest(package=package.__name__):
                self.assertEqual(package.Context.get_usage(None), "")
                stderr = io.StringIO()
                failing = mock.Mock(side_effect=exceptions.UsageError("bad input"))
                with mock.patch.object(cli_module, "app", failing), \
                        mock.patch.object(sys, "argv", ["rbstubs", "stats"]), \
                        contextlib.redirect_stderr(stderr):
                    with self.assertRaises(SystemExit) as raised:
                        main()
                self.assertEqual(raised.exception.code, 2)
                self.assertIn("bad input", stderr.getvalue())

    def test_no_such_option(self):
        result = self.run_cli("stats", "--bogus")
        self.assertEqual(result.exit_code, 2)


class TestOutputHelpers(unittest.TestCase):
    def test_panel_box_from_environment(self):
        with mock.patch.dict(os.environ, {"RBSTUBS_PANEL_BOX": "horizontals"}):
            self.assertIs(get_panel_box(), box.HORIZONTALS)
        with mock.patch.dict(os.environ, {"RBSTUBS_PANEL_BOX": "double-line"}):
            self.assertIs(get_panel_box(), box.ROUNDED)

    def test_format_size(self):
        self.assertEqual(format_size(512), "512B")
        self.assertEqual(format_size(2048), "2.0KB")
        self.assertEqual(format_size(3 * 1024 * 1024), "3.0MB")


if __name__ == "__main__":
    unittest.main()
