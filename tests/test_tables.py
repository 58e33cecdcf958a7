import re

import pytest

from dumpmask.config import (
    DEFAULT_EMAIL_REGEX,
    DEFAULT_PHONE_REGEX,
    Config,
    MaskingRule,
    MaskOptions,
    Settings,
    TableConfig,
)
from dumpmask.masking import Masker
from dumpmask.tables import (
    FieldInfo,
    TableAnalyzer,
    TableInfo,
    parse_tuple,
    process_dump_line,
)

CREATE_USERS = [
    "CREATE TABLE `users` (\n",
    "  `id` int(11) NOT NULL,\n",
    "  `email` varchar(255) DEFAULT NULL,\n",
    "  `phone` varchar(32) DEFAULT NULL,\n",
    "  PRIMARY KEY (`id`)\n",
    ") ENGINE=InnoDB DEFAULT CHARSET=utf8;\n",
]


def make_settings(tables, white_emails=()):
    config = Config(cache_path="", processing_tables=tables)
    config.masking.phone = MaskingRule(target="2-6", value="*")
    return Settings(
        config=config,
        email_regex=re.compile(DEFAULT_EMAIL_REGEX, re.ASCII),
        phone_regex=re.compile(DEFAULT_PHONE_REGEX, re.ASCII),
        email_white_list=set(white_emails),
    )


@pytest.fixture
def analyzer():
    result = TableAnalyzer()
    for line in CREATE_USERS:
        result.parse_line(line)
    return result


@pytest.fixture
def settings():
    return make_settings({"users": TableConfig(email=["email"], phone=["phone"])})


BOTH = MaskOptions(email_algorithm="light-hash", phone_algorithm="light-mask")


def test_parse_line_collects_fields(analyzer):
    info = analyzer.get("users")
    assert info == TableInfo(
        name="users",
        fields=[
            FieldInfo(name="id", type="int(11)", position=1),
            FieldInfo(name="email", type="varchar(255)", position=2),
            FieldInfo(name="phone", type="varchar(32)", position=3),
        ],
    )


def test_table_not_registered_before_end():
    partial = TableAnalyzer()
    for line in CREATE_USERS[:-1]:
        partial.parse_line(line)
    assert partial.get("users") is None
    partial.parse_line(CREATE_USERS[-1])
    assert [f.name for f in partial.get("users").fields] == ["id", "email", "phone"]


def test_field_lines_outside_table_are_ignored():
    fresh = TableAnalyzer()
    fresh.parse_line("  `id` int(11) NOT NULL,")
    fresh.parse_line(") ENGINE=InnoDB;")
    assert fresh.tables() == {}


def test_tables_returns_copy(analyzer):
    copy = analyzer.tables()
    copy.pop("users")
    assert list(analyzer.tables()) == ["users"]


def test_position_of(analyzer):
    info = analyzer.get("users")
    assert info.position_of("phone") == 2
    assert info.position_of("missing") is None


def test_parse_tuple_respects_quotes():
    assert parse_tuple("(1,'a,b','x')") == ["1", "'a,b'", "'x'"]


def test_parse_tuple_drops_escape_backslash():
    assert parse_tuple("(1,'it\\'s')") == ["1", "'it's'"]


def test_parse_tuple_empty_and_trailing():
    assert parse_tuple("()") == []
    assert parse_tuple("(1,)") == ["1"]


def test_process_masks_email_and_phone(analyzer, settings):
    masker = Masker(settings)
    line = "INSERT INTO `users` VALUES (1,'test@example.com','8-900-111-22-33');"
    result = process_dump_line(line, BOTH, masker, analyzer, settings)
    assert result == (
        "INSERT INTO `users` VALUES (1,'t098f6b@example.com','8-***-**1-22-33');"
    )


def test_process_only_email_option(analyzer, settings):
    masker = Masker(settings)
    options = MaskOptions(email_algorithm="light-hash")
    line = "INSERT INTO `users` VALUES (1,'test@example.com','8-900-111-22-33');"
    result = process_dump_line(line, options, masker, analyzer, settings)
    assert "'8-900-111-22-33'" in result
    assert masker.mask_email("test@example.com") in result
    assert "test@example.com" not in result


def test_process_several_tuples(analyzer, settings):
    masker = Masker(settings)
    line = (
        "INSERT INTO `users` VALUES (1,'a@example.com',NULL),"
        "(2,'b@example.com',NULL);"
    )
    result = process_dump_line(line, BOTH, masker, analyzer, settings)
    expected = (
        "INSERT INTO `users` VALUES "
        f"(1,'{masker.mask_email('a@example.com')}',NULL),"
        f"(2,'{masker.mask_email('b@example.com')}',NULL);"
    )
    assert result == expected


@pytest.mark.parametrize(
    "line",
    [
        "INSERT INTO `users` VALUES (1,NULL,NULL);\n",
        "INSERT INTO `orders` VALUES (1,'test@example.com','8-900-111-22-33');\n",
        "-- comment test@example.com\n",
    ],
)
def test_process_leaves_untouched_lines(analyzer, settings, line):
    masker = Masker(settings)
    assert process_dump_line(line, BOTH, masker, analyzer, settings) == line


def test_process_unknown_structure(settings):
    masker = Masker(settings)
    line = "INSERT INTO `users` VALUES (1,'test@example.com',NULL);\n"
    empty = TableAnalyzer()
    assert process_dump_line(line, BOTH, masker, empty, settings) == line


def test_process_white_listed_email(analyzer):
    tables = {"users": TableConfig(email=["email"], phone=[])}
    settings = make_settings(tables, white_emails=["test@example.com"])
    masker = Masker(settings)
    line = "INSERT INTO `users` VALUES (1,'test@example.com',NULL);\n"
    assert process_dump_line(line, BOTH, masker, analyzer, settings) == line


def test_process_ignores_unknown_column_names(analyzer):
    tables = {"users": TableConfig(email=["nope"], phone=[])}
    settings = make_settings(tables)
    masker = Masker(settings)
    line = "INSERT INTO `users` VALUES (1,'test@example.com',NULL);\n"
    assert process_dump_line(line, BOTH, masker, analyzer, settings) == line