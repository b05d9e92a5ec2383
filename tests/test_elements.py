"""
Tests for the Projection Engine.

These tests verify:
    - transform() binds Elements for data nodes and records the rest in meta
    - Reads and writes go through element hooks
    - Validation rejects values and leaves the previous value in place
    - Extending the schema re-transforms live Elements in place
    - Config inheritance, defaults and invocable elements
"""

import asyncio

import pytest

from yangtree import parse
from yangtree.elements import Element, Model
from yangtree.errors import ConstructFailed, InvalidTransformInput, ReadOnlyError, ValidationFailed
from yangtree.extensions import ElementHook, Extension, register


STATE_MODULE = """
module device {
  namespace "urn:device";
  prefix dev;

  container settings {
    leaf hostname {
      type string {
        length "1..16";
      }
    }
    leaf mode {
      type enumeration {
        enum auto;
        enum manual;
      }
      default auto;
    }
    leaf-list servers {
      type string;
    }
  }

  container state {
    config false;
    leaf uptime {
      type uint32;
    }
  }

  list user {
    key name;
    leaf name {
      type string;
    }
    leaf age {
      type uint8;
    }
  }

  rpc reboot {
    input {
      leaf delay {
        type uint8;
      }
    }
  }
}
"""


@pytest.fixture
def example(example_source):
    schema = parse(example_source)
    return schema, schema.transform()


@pytest.fixture
def device():
    schema = parse(STATE_MODULE)
    return schema, schema.transform()


class TestTransform:
    """Test projecting schema nodes onto a Model."""

    def test_returns_model(self, example):
        schema, model = example
        assert isinstance(model, Model)
        assert list(model) == ['example']
        assert isinstance(model.binding('example'), Element)

    def test_nested_fields(self, example):
        schema, model = example
        server = model['example']['server']
        assert isinstance(server, Model)
        assert set(server) == {'name', 'load', 'host', 'port'}

    def test_non_data_nodes_go_to_meta(self, example):
        schema, model = example
        fields = model['example']
        assert fields.meta['prefix'] == 'ex'
        assert fields.meta['description'] == 'Example module'
        assert 'prefix' not in fields
        assert 'percent' in fields.meta

    def test_uses_expands_grouping(self, example):
        schema, model = example
        server = model['example']['server']
        assert server.meta['endpoint'] == 'endpoint'
        assert model['example']['server'].binding('host').expr.parent.keyword == 'grouping'

    def test_transform_onto_existing_model(self):
        host = Model({'other': 1})
        leaf = parse("leaf x { type string; }")
        assert leaf.transform(host) is host
        assert set(host) == {'other', 'x'}
        assert host['other'] == 1

    def test_metadata_only_node(self):
        node = parse("container c { description 'about'; }").child('description')
        host = node.transform()
        assert len(host) == 0
        assert host.meta == {'description': 'about'}

    def test_rejects_non_model_host(self):
        leaf = parse("leaf x { type string; }")
        with pytest.raises(InvalidTransformInput):
            leaf.transform({})

    def test_to_dict(self, example):
        schema, model = example
        model['example']['server']['name'] = 'web'
        assert model.to_dict() == {
            'example': {
                'server': {'name': 'web', 'load': None, 'host': None, 'port': 8080},
            },
        }


class TestAccess:
    """Test reads and writes through element hooks."""

    def test_default_is_coerced(self, example):
        schema, model = example
        assert model['example']['server']['port'] == 8080

    def test_unset_value(self, example):
        schema, model = example
        assert model['example']['server']['name'] is None

    def test_write_and_read(self, example):
        schema, model = example
        model['example']['server']['load'] = 42
        assert model['example']['server']['load'] == 42

    def test_text_is_coerced_to_base_type(self, example):
        schema, model = example
        model['example']['server']['load'] = '42'
        assert model['example']['server']['load'] == 42

    def test_typedef_range(self, example):
        schema, model = example
        with pytest.raises(ValidationFailed):
            model['example']['server']['load'] = 150

    def test_rejected_value_keeps_previous(self, example):
        schema, model = example
        server = model['example']['server']
        server['load'] = 10
        with pytest.raises(ValidationFailed):
            server['load'] = 'lots'
        assert server['load'] == 10

    def test_nested_assignment(self, example):
        schema, model = example
        model['example']['server'] = {'name': 'web', 'port': 443}
        assert model['example']['server']['name'] == 'web'
        assert model['example']['server']['port'] == 443

    def test_nested_assignment_rolls_back(self, example):
        schema, model = example
        model['example']['server']['name'] = 'web'
        with pytest.raises(ValidationFailed):
            model['example']['server'] = {'name': 'api', 'load': 500}
        assert model['example']['server']['name'] == 'web'
        assert model['example']['server']['load'] is None

    def test_nested_assignment_resets_unset_fields(self, example):
        """Fields written before the rejected one go back to unset."""
        schema, model = example
        server = model['example']['server']
        assert server['host'] is None
        with pytest.raises(ValidationFailed):
            model['example']['server'] = {'host': 'db', 'load': 500}
        assert server['host'] is None
        assert server['load'] is None
        assert server['port'] == 8080

    def test_unknown_field(self, example):
        schema, model = example
        with pytest.raises(ValidationFailed):
            model['example']['server'] = {'color': 'blue'}

    def test_custom_hooks(self, empty_registry):
        register(Extension('counter', argument='name', element=ElementHook(
            get=lambda element: (element.value or 0) * 2,
            set=lambda element, value: int(value),
        )))
        model = parse("counter hits;").transform()
        assert model['hits'] == 0
        model['hits'] = '3'
        assert model['hits'] == 6
        assert model.binding('hits').value == 3

    def test_delete_discards_element(self):
        leaf = parse("leaf x { type string; }")
        model = leaf.transform()
        assert leaf.subscribers() == [model.binding('x')]
        del model['x']
        assert leaf.subscribers() == []


class TestDataTypes:
    """Test built-in type checks on leaves."""

    def test_string_length(self, device):
        schema, model = device
        settings = model['device']['settings']
        settings['hostname'] = 'router'
        with pytest.raises(ValidationFailed):
            settings['hostname'] = ''
        with pytest.raises(ValidationFailed):
            settings['hostname'] = 'x' * 17
        assert settings['hostname'] == 'router'

    def test_enumeration(self, device):
        schema, model = device
        settings = model['device']['settings']
        assert settings['mode'] == 'auto'
        settings['mode'] = 'manual'
        with pytest.raises(ValidationFailed):
            settings['mode'] = 'turbo'

    def test_leaf_list(self, device):
        schema, model = device
        settings = model['device']['settings']
        settings['servers'] = ['a', 'b']
        assert settings['servers'] == ['a', 'b']
        settings['servers'] = 'solo'
        assert settings['servers'] == ['solo']
        with pytest.raises(ValidationFailed):
            settings['servers'] = ['ok', 5]

    def test_integer_bounds(self):
        model = parse("leaf small { type int8; }").transform()
        model['small'] = -128
        with pytest.raises(ValidationFailed):
            model['small'] = 128
        with pytest.raises(ValidationFailed):
            model['small'] = True

    def test_boolean_from_text(self):
        model = parse("leaf flag { type boolean; default true; }").transform()
        assert model['flag'] is True
        model['flag'] = 'false'
        assert model['flag'] is False


class TestDefaults:
    """Test that defaults obey the same checks as assigned values."""

    def test_leaf_default_must_match_type(self):
        with pytest.raises(ConstructFailed):
            parse("container c { leaf x { type uint8; default abc; } }")

    def test_typedef_default_must_match_type(self):
        with pytest.raises(ConstructFailed):
            parse("typedef small { type uint8; default 300; }")

    def test_default_checked_against_restrictions(self):
        with pytest.raises(ConstructFailed):
            parse("leaf level { type int8 { range '1..5'; } default 9; }")

    def test_extension_default_is_validated(self, empty_registry):
        register(Extension('counter', argument='name', default='many', element=ElementHook(
            validate=lambda element, value: isinstance(value, int),
        )))
        with pytest.raises(ValidationFailed):
            parse("counter hits;").transform()


class TestConfig:
    """Test configurability."""

    def test_config_false_is_read_only(self, device):
        schema, model = device
        state = model['device'].binding('state')
        assert state.configurable is False
        with pytest.raises(ReadOnlyError):
            model['device']['state'] = {'uptime': 5}

    def test_config_is_inherited(self, device):
        schema, model = device
        with pytest.raises(ReadOnlyError):
            model['device']['state']['uptime'] = 5
        assert model['device']['state']['uptime'] is None

    def test_other_branches_stay_configurable(self, device):
        schema, model = device
        assert model['device']['settings'].binding('hostname').configurable is True

    def test_extension_level_config(self, empty_registry):
        register(Extension('counter', argument='name', config='false',
                           element=ElementHook(), default=7))
        model = parse("counter hits;").transform()
        assert model['hits'] == 7
        with pytest.raises(ReadOnlyError):
            model['hits'] = 1


class TestLists:
    """Test list entries and keys."""

    def test_entries(self, device):
        schema, model = device
        model['device']['user'] = [{'name': 'ada', 'age': 36}, {'name': 'bob'}]
        users = model['device']['user']
        assert [entry['name'] for entry in users] == ['ada', 'bob']
        assert users[0]['age'] == 36
        assert users[1]['age'] is None

    def test_duplicate_keys(self, device):
        schema, model = device
        with pytest.raises(ValidationFailed):
            model['device']['user'] = [{'name': 'ada'}, {'name': 'ada'}]
        assert model['device']['user'] is None

    def test_missing_key(self, device):
        schema, model = device
        with pytest.raises(ValidationFailed):
            model['device']['user'] = [{'age': 3}]

    def test_entry_fields_are_validated(self, device):
        schema, model = device
        with pytest.raises(ValidationFailed):
            model['device']['user'] = [{'name': 'ada', 'age': 'old'}]

    def test_list_to_dict(self, device):
        schema, model = device
        model['device']['user'] = [{'name': 'ada', 'age': 36}]
        assert model.to_dict()['device']['user'] == [{'name': 'ada', 'age': 36}]


class TestInvocable:
    """Test rpc elements."""

    def test_handler_result(self, device):
        schema, model = device
        model['device']['reboot'] = lambda delay=0: f"rebooting in {delay}"
        assert asyncio.run(model['device']['reboot'](delay=5)) == "rebooting in 5"

    def test_async_handler(self, device):
        schema, model = device

        async def handler(delay=0):
            return delay * 2

        model['device']['reboot'] = handler
        assert asyncio.run(model['device']['reboot'](delay=4)) == 8

    def test_handler_failure_rejects(self, device):
        schema, model = device

        def handler(**kwargs):
            raise RuntimeError("busy")

        model['device']['reboot'] = handler
        with pytest.raises(RuntimeError, match="busy"):
            asyncio.run(model['device']['reboot']())

    def test_handler_must_be_callable(self, device):
        schema, model = device
        with pytest.raises(ValidationFailed):
            model['device']['reboot'] = 5

    def test_no_handler(self, device):
        schema, model = device
        assert model['device'].binding('reboot').invocable is True
        assert asyncio.run(model['device']['reboot']()) is None


class TestLiveUpdates:
    """Test re-transformation after the schema is extended."""

    def test_new_field_appears(self, example):
        schema, model = example
        server = model['example']['server']
        schema.child('container').extend("leaf limit { type uint8; }")
        assert 'limit' in server
        server['limit'] = 9
        assert model['example']['server']['limit'] == 9

    def test_values_survive(self, example):
        schema, model = example
        model['example']['server']['name'] = 'web'
        model['example']['server']['port'] = 443
        schema.child('container').extend("leaf limit { type uint8; }")
        assert model['example']['server']['name'] == 'web'
        assert model['example']['server']['port'] == 443

    def test_exactly_one_re_transform(self, example, monkeypatch):
        schema, model = example
        calls = []
        original = Element._materialize

        def spy(self, value):
            calls.append(self.key)
            original(self, value)

        monkeypatch.setattr(Element, '_materialize', spy)
        schema.child('container').extend("leaf limit { type uint8; }")
        assert calls.count('server') == 1
        assert calls.count('example') == 0

    def test_grouping_extension_reaches_users(self, example):
        """Fields added to a grouping appear wherever it is used."""
        schema, model = example
        model['example']['server']['name'] = 'web'
        schema.resolve('grouping', 'endpoint').extend("leaf proto { type string; }")
        server = model['example']['server']
        assert set(server) == {'name', 'load', 'host', 'port', 'proto'}
        assert server['name'] == 'web'
        assert server['port'] == 8080

    def test_grouping_followed_once(self, example):
        schema, model = example
        grouping = schema.resolve('grouping', 'endpoint')
        server = model['example'].binding('server')
        schema.child('container').extend("leaf limit { type uint8; }")
        assert grouping.subscribers() == [server]
        del model['example']['server']
        assert grouping.subscribers() == []

    def test_extending_a_leaf(self, example):
        schema, model = example
        name = schema.child('container').child('leaf')
        model['example']['server']['name'] = 'web'
        name.extend("config false;")
        binding = model['example']['server'].binding('name')
        assert binding.configurable is False
        assert model['example']['server']['name'] == 'web'

    def test_retransform_replaces_binding(self):
        leaf = parse("leaf x { type string; }")
        model = leaf.transform()
        model['x'] = 'kept'
        first = model.binding('x')
        leaf.transform(model)
        assert model.binding('x') is not first
        assert model['x'] == 'kept'
        assert leaf.subscribers() == [model.binding('x')]


class TestValidate:
    """Test expr.validate()."""

    def test_valid_value(self):
        leaf = parse("leaf x { type string; }")
        element = leaf.validate('ok')
        assert isinstance(element, Element)
        assert element.value == 'ok'

    def test_invalid_value(self):
        leaf = parse("leaf x { type string; }")
        with pytest.raises(ValidationFailed):
            leaf.validate(5)

    def test_validate_does_not_subscribe(self):
        leaf = parse("leaf x { type string; }")
        leaf.validate('ok')
        assert leaf.subscribers() == []

    def test_none_result_passes(self, empty_registry):
        register(Extension('free', argument='name',
                           element=ElementHook(validate=lambda element, value: None)))
        assert parse("free f;").validate(object()) is not None

    def test_falsy_result_rejects(self, empty_registry):
        register(Extension('strict', argument='name',
                           element=ElementHook(validate=lambda element, value: 0)))
        with pytest.raises(ValidationFailed):
            parse("strict s;").validate('anything')
