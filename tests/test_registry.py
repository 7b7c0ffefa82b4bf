import pytest

from trellis.errors import RegistrationError
from trellis.registry import ClassRegistry, inferred_name


class Database:
    url: str = ""


class Cache:
    pass


class NeedsArguments:
    def __init__(self, required):
        self.required = required


@pytest.fixture
def classes():
    return ClassRegistry()


@pytest.fixture
def decorated(classes):
    @classes.registers()
    class Service:
        pass

    return Service


def test_name_inferred_from_class():
    assert inferred_name(Database) == 'Database'


def test_name_cannot_be_inferred_from_instance():
    with pytest.raises(RegistrationError, match="is not a class"):
        inferred_name(Database())


def test_decorator_registers_class(classes: ClassRegistry, decorated):
    assert 'Service' in classes
    assert classes.get_type('Service') is decorated


def test_decorator_accepts_explicit_name(classes: ClassRegistry):
    @classes.registers('db')
    class Postgres:
        pass

    assert classes.get_type('db') is Postgres
    assert 'Postgres' not in classes


def test_create_instantiates_with_no_arguments(classes: ClassRegistry):
    classes.register(Database)

    first = classes.create('Database')
    second = classes.create('Database')

    assert isinstance(first, Database)
    assert first is not second


def test_create_unknown_name_returns_none(classes: ClassRegistry):
    assert classes.create('Nope') is None


def test_create_propagates_constructor_errors(classes: ClassRegistry):
    classes.register(NeedsArguments)

    with pytest.raises(TypeError):
        classes.create('NeedsArguments')


def test_same_class_may_be_registered_twice(classes: ClassRegistry):
    classes.register(Database)
    classes.register(Database)

    assert classes.registered_types() == {'Database': Database}


def test_name_clash_raises(classes: ClassRegistry):
    classes.register(Database, 'store')

    with pytest.raises(RegistrationError, match="class name store is already registered"):
        classes.register(Cache, 'store')


def test_only_classes_can_be_registered(classes: ClassRegistry):
    with pytest.raises(RegistrationError, match="is not a class"):
        classes.register(Database())


def test_registered_types_is_a_copy(classes: ClassRegistry):
    classes.register(Database)

    classes.registered_types().clear()

    assert 'Database' in classes
