import unittest

from rbstubs.stubs.index import StubIndex
from rbstubs.stubs.model import Visibility
from rbstubs.stubs.parser import parse_stub
from rbstubs.utils.exceptions import IndexLookupError

from stub_fixtures import REAL_SYNTAX_STUB, parse_fixture_files


def labels(items):
    return [item.label for item in items]


class IndexTestCase(unittest.TestCase):
    def setUp(self):
        self.index = StubIndex.from_files(parse_fixture_files())


class TestIndexBuilding(IndexTestCase):
    def test_reopened_scope_is_merged(self):
        string = self.index.get("String")
        self.assertEqual(string.sources, ["string.rb", "more.rb"])
        self.assertEqual(string.doc, ["Byte sequences with an encoding."])
        self.assertIsNotNone(string.own_method("unpack1"))
        self.assertIsNotNone(string.own_method("length"))

    def test_attribute_becomes_method(self):
        self.assertIsNotNone(self.index.get("String").own_method("encoding_name"))

    def test_top_level_definitions_are_private_object_members(self):
        require = self.index.get("Object").own_method("require")
        self.assertEqual(require.visibility, Visibility.PRIVATE)
        self.assertIsNotNone(self.index.get("Object").own_constant("RUBY_VERSION"))

    def test_globals(self):
        self.assertEqual([g.name for g in self.index.globals()], ["$stdout"])

    def test_nested_scopes(self):
        self.assertIn("Errno::ENOENT", self.index)
        self.assertIn("Process::Status", self.index)
        self.assertNotIn("ENOENT", self.index)
        self.assertEqual(self.index.namespaces()["Process"], {"Status": {}})

    def test_kind_conflict_is_logged(self):
        files = [parse_stub("module X\nend\n", "a.rb"), parse_stub("class X\nend\n", "b.rb")]
        with self.assertLogs("rbstubs.stubs.index", level="WARNING"):
            index = StubIndex.from_files(files)
        self.assertEqual(index.get("X").kind, "module")

    def test_top_level_comments_do_not_create_object(self):
        index = StubIndex.from_files([parse_stub("# Notes on this file.\n\nprivate\n\n# A.\nclass A\nend\n", "a.rb")])
        self.assertNotIn("Object", index)
        self.assertEqual(index.stats()["classes"], 1)

    def test_stats(self):
        self.assertEqual(self.index.stats(), {
            "files": 3,
            "classes": 9,
            "modules": 6,
            "methods": 17,
            "instance_methods": 15,
            "singleton_methods": 2,
            "constants": 2,
            "aliases": 1,
            "globals": 1,
        })


class TestResolution(IndexTestCase):
    def test_lexical_resolution(self):
        self.assertEqual(self.index.resolve("Status", "Process"), "Process::Status")
        self.assertEqual(self.index.resolve("String", "Process::Status"), "String")
        self.assertEqual(self.index.resolve("::String", "Process"), "String")
        self.assertIsNone(self.index.resolve("Status"))

    def test_scope_raises_for_unknown(self):
        with self.assertRaises(IndexLookupError):
            self.index.scope("Nope")

    def test_superclasses(self):
        self.assertEqual(self.index.superclass_of("Errno::ENOENT"), "SystemCallError")
        self.assertEqual(self.index.superclass_of("String"), "Object")
        self.assertEqual(self.index.superclass_of("Object"), "BasicObject")
        self.assertIsNone(self.index.superclass_of("BasicObject"))
        self.assertIsNone(self.index.superclass_of("Kernel"))
        self.assertEqual(self.index.superclass_of("Class"), "Module")


class TestAncestors(IndexTestCase):
    def test_prepend_include_and_superclass_order(self):
        self.assertEqual(
            self.index.ancestors("Shout"),
            ["Loud", "Shout", "String", "Comparable", "Object", "Kernel", "BasicObject"],
        )

    def test_error_hierarchy(self):
        self.assertEqual(
            self.index.ancestors("ENOENT", namespace="Errno"),
            ["Errno::ENOENT", "SystemCallError", "StandardError", "Object", "Kernel", "BasicObject"],
        )

    def test_module_ancestors(self):
        self.assertEqual(self.index.ancestors("Comparable"), ["Comparable"])

    def test_singleton_ancestors(self):
        self.assertEqual(
            [str(a) for a in self.index.singleton_ancestors("String")],
            [
                "#<Class:String>", "#<Class:Object>", "#<Class:BasicObject>",
                "Class", "Module", "Object", "Kernel", "BasicObject",
            ],
        )

    def test_singleton_ancestors_with_extend(self):
        chain = [str(a) for a in self.index.singleton_ancestors("Dir")]
        self.assertEqual(chain[:3], ["#<Class:Dir>", "Forwardable", "#<Class:Object>"])

    def test_superclass_cycle_terminates(self):
        index = StubIndex.from_files([parse_stub("class A < B\nend\nclass B < A\nend\n")])
        self.assertEqual(index.ancestors("A"), ["A", "B"])
        self.assertEqual([str(a) for a in index.singleton_ancestors("A")][:2], ["#<Class:A>", "#<Class:B>"])


class TestMethodLookup(IndexTestCase):
    def test_own_method(self):
        match = self.index.lookup_method("String", "upcase")
        self.assertEqual((match.owner, match.depth), ("String", 0))
        self.assertEqual(match.header, "String#upcase(*options)")

    def test_prepended_module_wins(self):
        self.assertEqual(self.index.lookup_method("Shout", "upcase").owner, "Loud")

    def test_inherited_method(self):
        match = self.index.lookup_method("Shout", "puts")
        self.assertEqual((match.owner, match.depth), ("Kernel", 5))

    def test_alias(self):
        match = self.index.lookup_method("String", "size")
        self.assertEqual(match.alias_of, "length")
        self.assertEqual(match.display_name, "String#size")
        self.assertEqual(match.doc, ["Same as length."])

    def test_singleton_methods(self):
        self.assertEqual(self.index.lookup_method("String", "try_convert", singleton=True).owner, "String")
        self.assertIsNone(self.index.lookup_method("String", "try_convert"))
        self.assertEqual(self.index.lookup_method("Dir", "def_delegator", singleton=True).owner, "Forwardable")

    def test_private_methods_are_found(self):
        self.assertEqual(self.index.lookup_method("String", "require").owner, "Object")

    def test_missing(self):
        self.assertIsNone(self.index.lookup_method("String", "nope"))
        with self.assertRaises(IndexLookupError):
            self.index.lookup_method("Nope", "x")

    def test_alias_cycle(self):
        index = StubIndex.from_files([parse_stub("class C\n  def x; end\n  alias a b\n  alias b a\nend\n")])
        self.assertIsNone(index.lookup_method("C", "a"))


class TestConstants(IndexTestCase):
    def test_qualified_constant(self):
        owner, constant = self.index.lookup_constant("Process::CLOCK_MONOTONIC")
        self.assertEqual((owner, constant.name), ("Process", "CLOCK_MONOTONIC"))

    def test_lexical_constant(self):
        owner, _ = self.index.lookup_constant("CLOCK_MONOTONIC", namespace="Process::Status")
        self.assertEqual(owner, "Process")

    def test_top_level_constant(self):
        owner, _ = self.index.lookup_constant("RUBY_VERSION", namespace="Process")
        self.assertEqual(owner, "Object")

    def test_missing_constant(self):
        self.assertIsNone(self.index.lookup_constant("Process::NOPE"))


class TestHover(IndexTestCase):
    def test_global(self):
        info = self.index.hover("$stdout")
        self.assertEqual((info.kind, info.signature, info.doc_text), ("global", "$stdout", "Standard output."))

    def test_instance_method(self):
        info = self.index.hover("String#upcase")
        self.assertEqual(info.signature, "def String#upcase(*options)")
        self.assertEqual(info.render_markdown(), "```ruby\ndef String#upcase(*options)\n```\n\nUpcases characters.")

    def test_alias(self):
        info = self.index.hover("String#size")
        self.assertEqual(info.title, "String#size (alias of length)")
        self.assertEqual(info.signature, "def String#size")

    def test_singleton_method(self):
        self.assertEqual(self.index.hover("String.try_convert").signature, "def String.try_convert(obj)")

    def test_scope(self):
        info = self.index.hover("Errno::ENOENT")
        self.assertEqual(info.kind, "class")
        self.assertEqual(info.signature, "class Errno::ENOENT < SystemCallError")
        self.assertEqual(info.doc, ["No such file or directory."])

    def test_module_from_namespace(self):
        info = self.index.hover("Status", namespace="Process")
        self.assertEqual(info.signature, "class Process::Status")

    def test_constant(self):
        info = self.index.hover("Process::CLOCK_MONOTONIC")
        self.assertEqual(info.signature, "Process::CLOCK_MONOTONIC = _")
        self.assertEqual(self.index.hover("RUBY_VERSION").title, "RUBY_VERSION")

    def test_nothing_found(self):
        for query in ("", "$nope", "String#nope", "Nope#x", "Nope.x", "NOPE"):
            with self.subTest(query=query):
                self.assertIsNone(self.index.hover(query))


class TestDefinition(IndexTestCase):
    def test_scope(self):
        self.assertEqual(self.index.definition("String"), ("string.rb", 2))
        self.assertEqual(self.index.definition("Status", namespace="Process"), ("more.rb", 29))

    def test_methods(self):
        self.assertEqual(self.index.definition("String#upcase"), ("string.rb", 6))
        self.assertEqual(self.index.definition("String#unpack1"), ("more.rb", 4))
        self.assertEqual(self.index.definition("String#puts"), ("core.rb", 10))

    def test_alias_points_at_alias_line(self):
        self.assertEqual(self.index.definition("String#size"), ("string.rb", 15))

    def test_constants_and_globals(self):
        self.assertEqual(self.index.definition("Process::CLOCK_MONOTONIC"), ("more.rb", 26))
        self.assertEqual(self.index.definition("$stdout"), ("core.rb", 31))

    def test_hover_carries_location(self):
        self.assertEqual(self.index.hover("String#upcase").location, ("string.rb", 6))

    def test_unknown(self):
        self.assertIsNone(self.index.definition("String#nope"))
        self.assertIsNone(self.index.definition("Nope"))


class TestShippedStatementForms(unittest.TestCase):
    def setUp(self):
        with self.assertLogs("rbstubs.stubs.index", level="DEBUG") as logs:
            self.index = StubIndex.from_files([parse_stub(REAL_SYNTAX_STUB, "core.rb")])
        self.logs = "\n".join(logs.output)

    def test_singleton_class_alias_lookup(self):
        info = self.index.hover("File.fnmatch?")
        self.assertEqual(info.title, "File.fnmatch? (alias of fnmatch)")
        self.assertEqual(info.signature, "def File.fnmatch?(pattern, path, *flags)")
        self.assertEqual(info.location, ("core.rb", 18))
        self.assertIsNone(self.index.hover("File#fnmatch?"))

    def test_singleton_class_alias_completion(self):
        items = self.index.complete("File", "fn", singleton=True)
        self.assertEqual(labels(items), ["fnmatch", "fnmatch?"])
        self.assertEqual((items[1].kind, items[1].detail), ("alias", "alias of File.fnmatch"))
        self.assertNotIn("fnmatch?", labels(self.index.complete("File")))

    def test_expression_superclass_is_skipped(self):
        self.assertEqual(self.index.ancestors("YAML::DomainType"), ["YAML::DomainType", "Object", "BasicObject"])
        self.assertIn("rb_cObject", self.logs)

    def test_expression_mixins_are_skipped(self):
        self.assertEqual(self.index.get("StringIO").includes, ["Enumerable"])
        self.assertEqual(self.index.ancestors("StringIO"), ["StringIO", "Enumerable", "Object", "BasicObject"])
        self.assertIn("IO.generic_readable", self.logs)

    def test_special_global_default(self):
        match = self.index.lookup_method("Array", "join")
        self.assertEqual(match.header, "Array#join(separator = $,)")


class TestCompletion(IndexTestCase):
    def test_prefix(self):
        self.assertEqual(labels(self.index.complete("String", "up")), ["upcase", "upcase!"])

    def test_case_insensitive(self):
        self.assertEqual(labels(self.index.complete("String", "UP")), ["upcase", "upcase!"])

    def test_inherited_methods_rank_lower(self):
        items = self.index.complete("String")
        names = labels(items)
        self.assertLess(names.index("length"), names.index("puts"))
        self.assertIn("size", names)
        self.assertIn("encoding_name", names)
        self.assertIn("!", names)

    def test_private_methods_hidden_by_default(self):
        names = labels(self.index.complete("String"))
        self.assertNotIn("initialize_copy", names)
        self.assertNotIn("require", names)
        names = labels(self.index.complete("String", include_private=True))
        self.assertIn("initialize_copy", names)
        self.assertIn("require", names)

    def test_shadowed_method_listed_once(self):
        items = [i for i in self.index.complete("Shout", "upcase") if i.label == "upcase"]
        self.assertEqual(len(items), 1)
        self.assertEqual(items[0].owner, "Loud")

    def test_alias_item(self):
        item = next(i for i in self.index.complete("String", "si"))
        self.assertEqual((item.kind, item.detail), ("alias", "alias of String#length"))

    def test_singleton(self):
        names = labels(self.index.complete("String", singleton=True))
        self.assertIn("try_convert", names)
        self.assertNotIn("upcase", names)

    def test_limit(self):
        self.assertEqual(len(self.index.complete("String", limit=3)), 3)

    def test_constant_path(self):
        self.assertEqual(labels(self.index.complete_constant("Errno::E")), ["Errno::ENOENT"])

    def test_constant_from_namespace(self):
        self.assertEqual(
            labels(self.index.complete_constant("St", namespace="Process")),
            ["Status", "String", "StandardError"],
        )

    def test_top_level_constant(self):
        items = self.index.complete_constant("RUBY")
        self.assertEqual([(i.label, i.kind) for i in items], [("RUBY_VERSION", "constant")])

    def test_unknown_namespace_prefix(self):
        self.assertEqual(self.index.complete_constant("Nope::X"), [])


if __name__ == "__main__":
    unittest.main()
