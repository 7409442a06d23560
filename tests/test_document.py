"""Integration tests for test file parsing."""

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from pytest_blocks.core import DocumentParser
from pytest_blocks.errors import BlockSchemaError
from pytest_blocks.schema import StepNode, VariableDefinition

if TYPE_CHECKING:
    from pyfakefs.fake_filesystem import FakeFilesystem
    from yaml import SafeLoader

TEST_FILE_CONTENT = '''
version: "1.0"
name: Login
description: Login scenarios
variables:
  baseUrl: https://example.com
  retries:
    type: number
    default: 3
procedures:
  - name: login
    returnType: Object
    params:
      - name: username
      - {name: password, type: string, default: secret}
    steps:
      - type: procedure_return
        params:
          VALUE: ${username}
beforeAll:
  - type: logic_log
    params: {MESSAGE: Starting}
afterEach:
  - type: logic_comment
tests:
  - id: t1
    name: Logs in
    tags: [smoke, auth]
    softAssertions: yes
    data:
      - name: admin
        values: {user: root}
    steps:
      - id: call
        type: logic_set_variable
        params:
          NAME: session
          VALUE:
            type: custom_login
            params: {username: "${user}"}
      - type: logic_if
        params:
          CONDITION: true
          OPTIONS: {retry: 2}
        slots:
          DO:
            - type: logic_comment
metadata:
  owner: qa
'''


def test_document_parser(loader: 'type[SafeLoader]') -> None:
    """Build the test file model, accepting camelCase field names."""
    test_file = DocumentParser(loader).parse(TEST_FILE_CONTENT)

    assert test_file.name == 'Login'
    assert test_file.resolve_variables() == {'baseUrl': 'https://example.com', 'retries': 3}
    assert isinstance(test_file.variables['retries'], VariableDefinition)
    assert test_file.procedures[0].return_type == 'Object'
    assert test_file.procedures[0].param_names == ('username', 'password')
    assert test_file.procedures[0].params[1].default == 'secret'
    assert len(test_file.before_all) == 1
    assert len(test_file.after_each) == 1
    assert test_file.metadata == {'owner': 'qa'}

    [test] = test_file.tests

    assert test.key == 't1'
    assert test.tags == ['smoke', 'auth']
    assert test.soft_assertions is True
    assert test.data[0].values == {'user': 'root'}

    call, branch = test.steps

    assert isinstance(call.params['VALUE'], StepNode)
    assert call.params['VALUE'].type == 'custom_login'
    assert branch.params['OPTIONS'] == {'retry': 2}
    assert [step.type for step in branch.slot('DO')] == ['logic_comment']
    assert branch.slot('ELSE') == ()


def test_empty_document() -> None:
    """Accept an empty document as an empty test file."""
    test_file = DocumentParser().parse('')

    assert test_file.name == 'Untitled'
    assert test_file.tests == []


@pytest.mark.parametrize('content, expect_message', (
    pytest.param('- 1\n- 2\n', r'^Test file must be a mapping', id='not a mapping'),
    pytest.param('tests: [\n', r'^Invalid YAML', id='invalid yaml'),
    pytest.param('!!python/object:os.system {}\n', r'^Invalid YAML', id='unsafe tag'),
    pytest.param('tests: 5\n', r'^Input should be a valid list', id='invalid type'),
    pytest.param(
        'tests:\n  - name: t\n    unknown: 1\n',
        r'^Extra inputs are not permitted',
        id='extra fields',
    ),
    pytest.param(
        'tests:\n  - name: t\n    steps:\n      - type: "not a type"\n',
        r'^String should match pattern',
        id='invalid block type',
    ),
    pytest.param(
        'variables:\n  1st: value\n',
        r'^Validation error',
        id='invalid variable name',
    ),
))
def test_parse_on_invalid_schema(content: str, expect_message: str) -> None:
    """Fail parsing on syntax and schema validation errors."""
    with pytest.raises(BlockSchemaError, match=expect_message):
        DocumentParser().parse(content)


def test_schema_error_snippet() -> None:
    """Point validation errors at the offending fragment."""
    with pytest.raises(BlockSchemaError) as excinfo:
        DocumentParser().parse(
            'name: Broken\n'
            'tests:\n'
            '  - name: t\n'
            '    softAssertions: maybe\n',
            filename='test_broken.blocks.yaml',
        )

    message = str(excinfo.value)

    assert excinfo.value.code == 'schema_error'
    assert 'in "test_broken.blocks.yaml"' in message
    assert 'softAssertions: maybe' in message
    assert 'name: Broken' not in message


def test_yaml_error_location() -> None:
    """Report the position of YAML syntax errors."""
    with pytest.raises(BlockSchemaError) as excinfo:
        DocumentParser().parse('name: ok\n\ttests: []\n')

    assert excinfo.value.context['line_num'] == 1
    assert 'line 2, column 1' in str(excinfo.value)


def test_parse_file(fs: 'FakeFilesystem') -> None:
    """Read test files from disk."""
    fs.create_file('/suite/test_login.blocks.yaml', contents=TEST_FILE_CONTENT)
    fs.create_file('/suite/test_broken.blocks.yaml', contents='tests: {}\n')

    parser = DocumentParser()

    assert parser.parse_file(Path('/suite/test_login.blocks.yaml')).name == 'Login'

    with pytest.raises(BlockSchemaError, match=r'in "/suite/test_broken.blocks.yaml"'):
        parser.parse_file(Path('/suite/test_broken.blocks.yaml'))
