"""
Tests for annotation metadata: attaching, reading and component discovery.
"""

import pytest

from perch.annotations import Annotation, AnnotationReader, Component, ComponentRegistry
from perch.controller import GET, Controller, RequestMapping, controller
from perch.faults import AnnotationFault


class Marker(Annotation):
    def __init__(self, value):
        self.value = value


class MethodOnly(Annotation):
    targets = ("method",)


def method_ref(reader, cls, name):
    return next(m for m in reader.get_methods(cls) if m.name == name)


class TestAttaching:

    def test_class_annotations_keep_source_order(self, reader):
        @Marker("first")
        @Marker("second")
        class Sample:
            pass

        assert [a.value for a in reader.get_class_annotations(Sample)] == ["first", "second"]

    def test_decorator_returns_target_unchanged(self):
        class Sample:
            pass

        assert Marker("x")(Sample) is Sample

    def test_class_annotations_are_not_inherited(self, reader):
        @Marker("base")
        class Base:
            pass

        class Child(Base):
            pass

        assert reader.get_class_annotations(Child) == []
        assert reader.get_class_annotation(Base, Marker).value == "base"

    def test_wrong_target_kind_raises(self):
        with pytest.raises(AnnotationFault):
            @MethodOnly()
            class Sample:
                pass

    def test_get_class_annotation_missing(self, reader):
        class Sample:
            pass

        assert reader.get_class_annotation(Sample, Marker) is None


class TestReading:

    def test_method_annotations(self, reader):
        class Sample:
            @Marker("a")
            @MethodOnly()
            def handler(self, ctx):
                pass

        ref = method_ref(reader, Sample, "handler")
        annotations = reader.get_method_annotations(ref)
        assert isinstance(annotations[0], Marker)
        assert isinstance(annotations[1], MethodOnly)
        assert reader.get_method_annotation(ref, MethodOnly) is annotations[1]
        assert reader.get_method_annotations_of(ref, Marker) == [annotations[0]]

    def test_malformed_storage_raises(self, reader):
        class Sample:
            pass

        Sample.__perch_annotations__ = "not a list"
        with pytest.raises(AnnotationFault):
            reader.get_class_annotations(Sample)

    def test_invalid_mapping_value_raises_on_read(self, reader):
        class Sample:
            @RequestMapping(value=123)
            def handler(self, ctx):
                pass

        with pytest.raises(AnnotationFault) as exc_info:
            reader.get_method_annotations(method_ref(reader, Sample, "handler"))
        assert exc_info.value.code == "ANNOTATION_INVALID"

    def test_methods_listed_own_first_in_definition_order(self, reader):
        class Base:
            def inherited(self):
                pass

            def shared(self):
                pass

        class Child(Base):
            def zeta(self):
                pass

            def alpha(self):
                pass

            def shared(self):
                pass

        names = [m.name for m in reader.get_methods(Child)]
        assert names == ["zeta", "alpha", "shared", "inherited"]

    def test_declaring_class(self, reader):
        class Base:
            def inherited(self):
                pass

        class Child(Base):
            pass

        ref = method_ref(reader, Child, "inherited")
        assert ref.owner is Child
        assert ref.declaring_class is Base
        assert ref.qualname.endswith("Base.inherited")

    def test_static_and_class_methods_are_flagged(self, reader):
        class Sample:
            def instance(self):
                pass

            @staticmethod
            def static():
                pass

            @classmethod
            def klass(cls):
                pass

            def _private(self):
                pass

        refs = {m.name: m for m in reader.get_methods(Sample)}
        assert AnnotationReader.is_instance_method(refs["instance"])
        assert not AnnotationReader.is_instance_method(refs["static"])
        assert not AnnotationReader.is_instance_method(refs["klass"])
        assert not AnnotationReader.is_public(refs["_private"])


class TestComponentRegistry:

    def test_controllers_recorded_in_application_order(self, registry):
        @controller(registry=registry)
        class First:
            pass

        @controller(registry=registry)
        class Second:
            pass

        assert [c.target for c in registry.get_annotations(Controller)] == [First, Second]

    def test_bare_decorator_uses_default_registry(self):
        from perch.annotations import default_registry

        @controller
        class Bare:
            pass

        try:
            targets = [c.target for c in default_registry.get_annotations(Controller)]
            assert Bare in targets
        finally:
            default_registry.clear()

    def test_duplicates_are_kept(self, registry):
        class Twice:
            pass

        Controller(registry=registry)(Twice)
        Controller(registry=registry)(Twice)
        assert len(registry.get_annotations(Controller)) == 2

    def test_query_by_base_kind(self, registry):
        @controller(registry=registry)
        class Sample:
            pass

        assert len(registry.get_annotations(Component)) == 1

    def test_clear(self, registry):
        @controller(registry=registry)
        class Sample:
            pass

        registry.clear()
        assert registry.get_annotations(Controller) == []

    def test_scan_imports_modules(self, registry):
        imported = registry.scan("json")
        assert "json" in imported
        assert "json.decoder" in imported


class TestRequestMapping:

    def test_shortcut_sets_verb(self):
        mapping = GET("/users", name="users")
        assert mapping.methods == ("GET",)
        assert mapping.patterns == ["/users"]
        assert mapping.name == "users"

    def test_multiple_patterns_and_verbs(self):
        mapping = RequestMapping(["/a", "/b"], method=["get", "post"])
        assert mapping.patterns == ["/a", "/b"]
        assert mapping.methods == ("GET", "POST")

    def test_shortcut_not_allowed_on_class(self):
        with pytest.raises(AnnotationFault):
            @GET("/x")
            class Sample:
                pass
