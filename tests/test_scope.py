import unittest
from typing import Protocol, runtime_checkable

import pytest

from larder import Container, Lifetime, Scope, ServiceNotRegisteredError


class TestContainerScopeBehavior(unittest.TestCase):
    parent: Container
    scope: Container

    def setUp(self):
        self.parent = Container()
        self.scope = self.parent.create_child_container()

    def test_scope_registration_overrides_parent_registration(self):
        class Service: ...

        parent_instance = Service()
        scope_instance = Service()

        self.parent.register(
            Service,
            lambda c: parent_instance,
            lifetime=Lifetime.SINGLETON,
        )

        self.scope.register(
            Service,
            lambda c: scope_instance,
            lifetime=Lifetime.SINGLETON,
        )

        assert self.scope.resolve(Service) is scope_instance
        assert self.parent.resolve(Service) is parent_instance

    def test_scope_instance_override_leaves_parent_untouched(self):
        parent_service = {"name": "Parent Service"}
        child_service = {"name": "Child Service"}

        self.parent.register_instance("sharedService", parent_service)
        self.scope.register_instance("sharedService", child_service)

        assert self.parent.resolve("sharedService") is parent_service
        assert self.scope.resolve("sharedService") is child_service

    def test_scope_resolves_from_parent_when_not_registered_locally(self):
        class Service: ...

        instance = Service()

        self.parent.register(
            Service,
            lambda c: instance,
            lifetime=Lifetime.SINGLETON,
        )

        assert self.scope.resolve(Service) is instance

    def test_scope_shares_parent_singleton(self):
        self.parent.register_singleton("repo", lambda _: object())

        from_scope = self.scope.resolve("repo")

        assert from_scope is self.parent.resolve("repo")
        assert "repo" not in self.scope.registrations()

    def test_parent_transient_sees_child_override(self):
        self.parent.register_instance("currentUser", "anonymous")
        self.parent.register_transient("greeter", lambda c: ("hello", c.resolve("currentUser")))
        self.scope.register_instance("currentUser", "alice")

        assert self.scope.resolve("greeter") == ("hello", "alice")
        assert self.parent.resolve("greeter") == ("hello", "anonymous")

    def test_parent_transient_factory_receives_resolving_container(self):
        seen = []
        self.parent.register_transient("recorder", lambda c: seen.append(c))

        self.scope.resolve("recorder")
        self.parent.resolve("recorder")

        assert seen == [self.scope, self.parent]

    def test_parent_singleton_factory_receives_parent_container(self):
        seen = []
        self.parent.register_singleton("recorder", lambda c: seen.append(c))

        self.scope.resolve("recorder")

        assert seen == [self.parent]

    def test_parent_singleton_keeps_parent_dependencies_when_child_overrides(self):
        self.parent.register_instance("mailer", "smtp")
        self.parent.register_singleton("invitations", lambda c: ("invitations", c.resolve("mailer")))
        self.scope.register_instance("mailer", "fake")

        assert self.scope.resolve("mailer") == "fake"
        assert self.scope.resolve("invitations") == ("invitations", "smtp")

    def test_scope_registration_can_depend_on_parent_services(self):
        self.parent.register_instance("db", "mongo")
        self.scope.register_transient("request_repo", lambda c: ("repo", c.resolve("db")))

        assert self.scope.resolve("request_repo") == ("repo", "mongo")

    def test_has_checks_ancestors(self):
        self.parent.register_instance("root-only", 1)
        grandchild = self.scope.create_child_container()

        assert self.scope.has("root-only")
        assert grandchild.has("root-only")
        assert not self.parent.has("missing")
        assert not grandchild.has("missing")

    def test_scope_registration_not_visible_in_parent(self):
        self.scope.register_instance("child-only", 1)

        assert not self.parent.has("child-only")
        with pytest.raises(ServiceNotRegisteredError):
            self.parent.resolve("child-only")

    def test_later_parent_registrations_are_visible(self):
        self.parent.register_instance("late", "value")

        assert self.scope.resolve("late") == "value"

    def test_scope_reset_does_not_affect_parent(self):
        self.parent.register_instance("a", 1)
        self.scope.register_instance("b", 2)

        self.scope.reset()

        assert not self.scope.registrations()
        assert self.parent.resolve("a") == 1
        assert self.scope.resolve("a") == 1
        assert not self.scope.has("b")

    def test_parent_reset_does_not_affect_child_registrations(self):
        self.parent.register_instance("a", 1)
        self.scope.register_instance("b", 2)

        self.parent.reset()

        assert self.scope.resolve("b") == 2
        assert not self.scope.has("a")

    def test_scope_cannot_be_constructed_directly(self):
        with pytest.raises(RuntimeError):
            Scope(self.parent)

    def test_create_scope_is_child_container(self):
        child = self.parent.create_scope()

        assert isinstance(child, Scope)
        assert child.parent is self.parent
        assert self.parent.parent is None

    def test_scope_registering_invalid_runtime_checkable_protocol_raises_type_error(self):
        @runtime_checkable
        class SupportsFoo(Protocol):
            def foo(self) -> int: ...

        class BadImpl: ...

        with pytest.raises(TypeError):
            self.scope.register_class(
                SupportsFoo,
                BadImpl,
                lifetime=Lifetime.TRANSIENT,
            )
