"""
pytest configuration for spec_bindgen tests.

Adds the scripts/ directory to sys.path so that
'from spec_bindgen.xxx import ...' works correctly, and provides a small
sample specification document shared by the tests.
"""

import copy
import sys
from pathlib import Path

import pytest
import yaml

# Ensure scripts/ is on the path (spec_bindgen package lives at scripts/spec_bindgen/)
scripts_dir = Path(__file__).parent.parent
if str(scripts_dir) not in sys.path:
    sys.path.insert(0, str(scripts_dir))


SAMPLE_DOC = {
    'headers': ['zoo/animals.hpp'],
    'primitives': [
        'void', 'bool', 'int', 'int64_t', 'double', 'std::string', 'StringData',
        'Mixed', 'AppError', 'Status',
    ],
    'templates': {
        'util::Optional': 1,
        'Nullable': 1,
        'std::shared_ptr': 1,
        'std::vector': 1,
        'std::map': 2,
        'std::pair': 2,
        'std::tuple': '*',
        'util::UniqueFunction': 1,
        'AsyncCallback': 1,
        'IgnoreArgument': 1,
    },
    'typeAliases': {
        'Name': 'std::string',
    },
    'enums': {
        'Color': {'values': ['Brown', 'Black', 'White']},
        'Size': {'cppName': 'zoo::Size', 'values': {'Small': 1, 'Large': 10}},
    },
    'opaqueTypes': ['Collar'],
    'keyTypes': {
        'TagKey': 'int64_t',
    },
    'records': {
        'Point': {
            'fields': {
                'x': 'double',
                'y': {'type': 'double', 'default': 0},
            },
        },
        'DogInfo': {
            'cppName': 'zoo::DogInfo',
            'fields': {
                'name': 'Name',
                'color': 'Color',
                'nickname': 'util::Optional<std::string>',
                'onBark': {'type': 'util::UniqueFunction<(times: int) -> void>', 'default': '{}'},
            },
        },
    },
    'classes': {
        'Dog': {
            'cppName': 'zoo::Dog',
            'constructors': {'make': '(name: Name)'},
            'properties': {'name': 'Name', 'color': 'Color'},
            'methods': {
                'bark': '(times: int) const -> std::string',
                'fetch': '(distance: double, cb: AsyncCallback<(found: bool, err: util::Optional<AppError>) -> void>)',
                'getTag': [
                    {'sig': '() -> TagKey', 'suffix': 'key'},
                    {'sig': '(raw: bool) -> int64_t', 'suffix': 'raw', 'cppName': 'get_tag'},
                ],
            },
            'staticMethods': {'registry': '() -> std::vector<std::string>'},
        },
        'Puppy': {
            'base': 'Dog',
            'methods': {
                'play': '(toy: std::string, unused: IgnoreArgument<int>) -> bool',
                'describe': '(extra: Mixed) const -> Mixed',
            },
        },
        'Kennel': {
            'sharedPtrWrapped': 'SharedKennel',
            'iterable': 'Dog',
            'constructors': {'open': '(size: Size)'},
            'methods': {
                'adopt': '(dog: Dog&&)',
                'sync': '(cb: AsyncCallback<(err: util::Optional<AppError>) -> void>)',
            },
            'staticMethods': {'find': '(id: int64_t) -> Nullable<SharedKennel>'},
        },
    },
    'interfaces': {
        'Listener': {'methods': {'notify': '(dog: Dog const&)'}},
    },
    'mixedInfo': {
        'dataTypes': {
            'Int': {'type': 'int64_t', 'getter': 'get_int'},
            'String': {'type': 'StringData', 'getter': 'get_string'},
        },
        'unusedDataTypes': ['Decimal'],
        'extraCtors': ['Dog'],
    },
}


@pytest.fixture
def sample_doc():
    """A fresh copy of the sample document; tests may modify it"""
    return copy.deepcopy(SAMPLE_DOC)


@pytest.fixture
def bound_spec(sample_doc):
    """The sample document, bound"""
    from spec_bindgen.binder import bind_model
    from spec_bindgen.spec import Spec
    return bind_model(Spec.from_dict(sample_doc))


@pytest.fixture
def sample_spec_file(tmp_path, sample_doc):
    path = tmp_path / 'zoo.yml'
    path.write_text(yaml.safe_dump(sample_doc, sort_keys=False))
    return path
