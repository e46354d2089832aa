import io

import pytest
import yaml

from c2q.PARSERS.compose_parser import ComposeParser, find_compose_file
from c2q.MODELS.compose_document import ComposeManaged, ExternallyManaged
from c2q.MODELS.service_definition import Service
from c2q.exceptions import ComposeParseError, error_chain


def write_compose(directory, content, file_name="compose.yaml"):
    path = directory / file_name
    with open(path, 'w') as f:
        yaml.safe_dump(content, f, sort_keys=False)
    return path


def test_parse(tmp_path):
    compose_content = {
        'version': '3.8',
        'name': 'app',
        'services': {
            'web': {
                'image': 'nginx:latest',
                'ports': ['80:80'],
                'environment': {
                    'DEBUG': 'true'
                },
                'restart': 'always'
            },
            'db': {
                'image': 'postgres:13',
                'volumes': ['db_data:/var/lib/postgresql/data']
            }
        },
        'volumes': {
            'db_data': {},
            'shared': {'external': True},
        }
    }
    compose_file = write_compose(tmp_path, compose_content)

    parser = ComposeParser(context={})
    document = parser.parse(str(compose_file))

    assert list(document.services) == ['web', 'db']
    assert document.name == 'app'
    assert document.services['web'].image == 'nginx:latest'
    assert document.services['web'].ports[0].to_publish() == '80:80'
    assert document.services['web'].environment_mapping()['DEBUG'] == 'true'
    assert document.services['web'].restart.condition == 'always'

    assert isinstance(document.volumes['db_data'], ComposeManaged)
    assert isinstance(document.volumes['shared'], ExternallyManaged)
    assert document.services['db'].volumes[0].source == 'db_data'
    assert document.services['db'].volumes[0].target == '/var/lib/postgresql/data'


def test_parse_interpolation_from_env_file(tmp_path, monkeypatch):
    monkeypatch.delenv('WEB_IMAGE', raising=False)
    monkeypatch.setenv('WEB_PORT', '9090')
    (tmp_path / '.env').write_text('WEB_IMAGE=nginx:1.25\nWEB_PORT=8080\n')
    compose_file = tmp_path / 'compose.yaml'
    compose_file.write_text(
        'services:\n'
        '  web:\n'
        '    image: ${WEB_IMAGE}\n'
        '    ports: ["${WEB_PORT}:80"]\n'
    )

    document = ComposeParser().parse(str(compose_file))

    assert document.services['web'].image == 'nginx:1.25'
    # the process environment wins over .env
    assert document.services['web'].ports[0].to_publish() == '9090:80'


def test_parse_from_string_with_context():
    parser = ComposeParser(context={'TAG': '13'})
    document = parser.parse_from_string('services:\n  db:\n    image: "postgres:${TAG:-latest}"\n')
    assert document.services['db'].image == 'postgres:13'


def test_parse_extensions():
    document = ComposeParser(context={}).parse_from_string(
        'x-common:\n  image: busybox\nservices:\n  web:\n    image: nginx\n'
    )
    assert document.extensions == {'x-common': {'image': 'busybox'}}


def test_parse_empty_document():
    document = ComposeParser(context={}).parse_from_string('')
    assert document.services == {}


def test_parse_missing_file(tmp_path):
    with pytest.raises(ComposeParseError, match='could not open compose file'):
        ComposeParser().parse(str(tmp_path / 'missing.yaml'))


def test_parse_invalid_yaml(tmp_path):
    compose_file = tmp_path / 'compose.yaml'
    compose_file.write_text('services: [unclosed\n')

    with pytest.raises(ComposeParseError) as exc:
        ComposeParser(context={}).parse(str(compose_file))
    assert error_chain(exc.value)[:2] == [
        f'file `{compose_file}` is not a valid compose file',
        'invalid YAML',
    ]


@pytest.mark.parametrize('content', [
    '- a\n- b\n',
    'services: [web]\n',
    'unknown_top_level: 1\n',
    'services:\n  web:\n    depends_on:\n      db:\n        condition: eventually\n',
])
def test_parse_invalid_document(content):
    with pytest.raises(ComposeParseError):
        ComposeParser(context={}).parse_from_string(content)


def test_parse_required_variable():
    with pytest.raises(ComposeParseError, match='interpolation failed: image must be set'):
        ComposeParser(context={}).parse_from_string('services:\n  web:\n    image: ${IMAGE:?image must be set}\n')


def test_parse_stdin():
    stream = io.StringIO('services:\n  web:\n    image: nginx\n')
    document = ComposeParser(context={}).parse_stdin(stream)
    assert document.services['web'].image == 'nginx'


def test_parse_stdin_invalid():
    with pytest.raises(ComposeParseError, match='data from stdin is not a valid compose file'):
        ComposeParser(context={}).parse_stdin(io.StringIO('- not a mapping\n'))


def test_find_compose_file(tmp_path):
    write_compose(tmp_path, {'services': {}}, 'docker-compose.yml')
    write_compose(tmp_path, {'services': {}}, 'compose.yaml')
    assert find_compose_file(str(tmp_path)) == str(tmp_path / 'compose.yaml')


def test_find_compose_file_missing(tmp_path):
    with pytest.raises(ComposeParseError, match='a compose file was not provided'):
        find_compose_file(str(tmp_path))


def test_parse_unquoted_restart_no():
    document = ComposeParser(context={}).parse_from_string(
        'services:\n  web:\n    image: nginx\n    restart: no\n'
    )
    assert document.services['web'].restart.condition == 'no'


def test_parse_unquoted_port_mapping():
    document = ComposeParser(context={}).parse_from_string(
        'services:\n  ssh:\n    image: sshd\n    ports:\n      - 22:22\n      - 8080\n'
    )
    assert [port.to_publish() for port in document.services['ssh'].ports] == ['22:22', '8080']


def test_parse_yaml_11_words_stay_strings():
    document = ComposeParser(context={}).parse_from_string(
        'services:\n'
        '  web:\n'
        '    image: nginx\n'
        '    read_only: true\n'
        '    environment:\n'
        '      ENABLED: yes\n'
        '      MODE: off\n'
        '      RATIO: 1.5\n'
    )
    web = document.services['web']
    assert web.read_only is True
    assert web.environment_mapping() == {'ENABLED': 'yes', 'MODE': 'off', 'RATIO': '1.5'}


def test_restart_false_is_no():
    service = Service.model_validate({'image': 'nginx', 'restart': False})
    assert service.restart.condition == 'no'
