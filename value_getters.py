#!/usr/bin/env python3
"""Value generation module: one getter per insertable column"""
import random
import sys
from collections import namedtuple
from datetime import datetime, timedelta
from decimal import Context, Decimal, ROUND_DOWN

from faker import Faker

from random_data_load_patterns import CompiledPatterns, declared_size
from random_data_load_utils import (
    debug_print, session_no_backslash_escapes, sql_literal, SqlType, NULL_FREQUENCY,
    ONE_YEAR_SECONDS, DEFAULT_SAMPLE_SIZE, TEXT_TYPES, BINARY_TYPES
)
from fk_sampler import get_samples, SamplingError

MAX_VALUES = {
    SqlType.TINYINT: 0xF,
    SqlType.SMALLINT: 0xFF,
    SqlType.MEDIUMINT: 0x7FFFF,
    SqlType.INT: 0x7FFFFFFF,
    SqlType.BIGINT: 0x7FFFFFFFFFFFFFFF,
}

# Size used for binary columns that report no maximum length
DEFAULT_BINARY_SIZE = 100

# Wide enough for DECIMAL(65,30)
DECIMAL_CONTEXT = Context(prec=100)


class Getter(object):
    """
    Base class for column value generators.

    A getter produces one typed value per call to value() and knows how to
    render it as a SQL literal. Nullable getters return None with
    null_frequency percent probability, decided before any value is built.
    """

    def __init__(self, name, allow_null=False, rng=None, null_frequency=NULL_FREQUENCY):
        self.name = name
        self.allow_null = allow_null
        self.rng = rng or random.Random()
        self.null_frequency = null_frequency

    def value(self):
        if self.allow_null and self.rng.randrange(100) < self.null_frequency:
            return None
        return self.generate()

    def generate(self):
        raise NotImplementedError

    def literal(self, value, no_backslash_escapes=False):
        return sql_literal(value, no_backslash_escapes)

    def quote(self):
        return self.literal(self.value())

    def __repr__(self):
        return "{0}({1!r})".format(type(self).__name__, self.name)


class RandomInt(Getter):
    """Uniform integer in [0, mask]"""

    def __init__(self, name, mask, allow_null=False, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        self.mask = int(mask)

    def generate(self):
        return self.rng.randint(0, self.mask)


class RandomIntRange(Getter):
    """Uniform integer in [min_value, max_value]"""

    def __init__(self, name, min_value, max_value, allow_null=False, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        if min_value > max_value:
            raise ValueError("{0}: min {1} > max {2}".format(name, min_value, max_value))
        self.min_value = int(min_value)
        self.max_value = int(max_value)

    def generate(self):
        return self.rng.randint(self.min_value, self.max_value)


class RandomDecimal(Getter):
    """Non-negative number below 10**size, rendered with the column scale"""

    def __init__(self, name, size, scale=None, allow_null=False, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        self.size = max(0, int(size))
        self.scale = int(scale) if scale is not None else None

    def generate(self):
        upper = 10 ** self.size
        value = self.rng.random() * self.rng.randrange(upper)
        if self.scale is None:
            return value
        return Decimal(value).quantize(Decimal(1).scaleb(-self.scale), rounding=ROUND_DOWN,
                                       context=DECIMAL_CONTEXT)

    def literal(self, value, no_backslash_escapes=False):
        if isinstance(value, float):
            return "{0:f}".format(value)
        return sql_literal(value, no_backslash_escapes)


class RandomString(Getter):
    """
    Text value chosen by what the column name suggests.

    An email column gets an email address, a city column a city, and so on;
    anything unrecognised gets a lorem ipsum word. Values are truncated to
    max_size when it is set.
    """

    def __init__(self, name, max_size, allow_null=False, faker=None, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        self.max_size = int(max_size) if max_size is not None else None
        self.faker = faker or Faker()
        self.hint, self.fn = self._pick_function(name.lower())

    def _pick_function(self, lname):
        f = self.faker
        if CompiledPatterns.EMAIL_PATTERN.search(lname):
            return "email", f.email
        if CompiledPatterns.FIRST_NAME_PATTERN.search(lname):
            return "first_name", f.first_name
        if CompiledPatterns.LAST_NAME_PATTERN.search(lname):
            return "last_name", f.last_name
        if CompiledPatterns.NAME_PATTERN.search(lname):
            return "name", f.name
        if CompiledPatterns.PHONE_PATTERN.search(lname):
            return "phone", f.phone_number
        if CompiledPatterns.ZIP_PATTERN.search(lname):
            return "zip", f.zipcode
        if CompiledPatterns.COLOR_PATTERN.search(lname):
            return "color", f.color_name
        if CompiledPatterns.CITY_PATTERN.search(lname):
            return "city", f.city
        if CompiledPatterns.COUNTRY_PATTERN.search(lname):
            return "country", f.country
        if CompiledPatterns.IP_ADDRESS_PATTERN.search(lname):
            return "ip", f.ipv4
        if CompiledPatterns.ADDRESS_PATTERN.search(lname):
            return "address", f.street_address
        return "word", f.word

    def generate(self):
        s = self.fn()
        if self.max_size is not None and len(s) > self.max_size:
            s = s[:self.max_size]
        return s


class RandomDate(Getter):
    """Date within the year before `now`"""

    def __init__(self, name, allow_null=False, now=None, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        self.now = now or datetime.now()

    def _random_moment(self):
        return self.now - timedelta(seconds=self.rng.randrange(ONE_YEAR_SECONDS))

    def generate(self):
        return self._random_moment().date()


class RandomDateTime(RandomDate):
    """Datetime within the year before `now`, at whole-second precision"""

    def generate(self):
        return self._random_moment().replace(microsecond=0)


class RandomTime(Getter):

    def generate(self):
        return timedelta(hours=self.rng.randrange(24), minutes=self.rng.randrange(60),
                         seconds=self.rng.randrange(60))


class RandomEnum(Getter):
    """One of the allowed values"""

    def __init__(self, name, allowed_values, allow_null=False, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        if not allowed_values:
            raise ValueError("{0}: no allowed values".format(name))
        self.allowed_values = list(allowed_values)

    def generate(self):
        return self.rng.choice(self.allowed_values)


class RandomSet(RandomEnum):
    """Comma-separated subset of the allowed values, in declaration order"""

    def generate(self):
        count = self.rng.randint(0, len(self.allowed_values))
        selected = set(self.rng.sample(range(len(self.allowed_values)), count))
        return ",".join(v for i, v in enumerate(self.allowed_values) if i in selected)


class RandomSample(Getter):
    """One of the values cached from a referenced column"""

    def __init__(self, name, samples, allow_null=False, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        if not samples:
            raise ValueError("{0}: empty sample".format(name))
        self.samples = list(samples)

    def generate(self):
        return self.rng.choice(self.samples)


class RandomBinary(Getter):
    """Bytes of exactly max_size length: readable text padded with random bytes"""

    def __init__(self, name, max_size, allow_null=False, faker=None, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        self.max_size = int(max_size) if max_size is not None else None
        self.faker = faker or Faker()

    def generate(self):
        size = self.max_size
        if size is None:
            size = self.rng.randrange(1, DEFAULT_BINARY_SIZE)
        if size <= 10:
            text = self.faker.first_name()
        elif size < 30:
            text = self.faker.name()
        else:
            text = self.faker.sentence()
        data = text.encode("utf-8")[:size]
        return data + bytes(self.rng.getrandbits(8) for _ in range(size - len(data)))


class RandomJson(Getter):

    def __init__(self, name, allow_null=False, faker=None, **kwargs):
        super().__init__(name, allow_null, **kwargs)
        self.faker = faker or Faker()

    def generate(self):
        return {self.faker.word(): self.faker.sentence()}


class Constant(Getter):
    """Always the same value. Used for debugging"""

    def __init__(self, value, name="constant"):
        super().__init__(name, allow_null=False)
        self.constant = value

    def value(self):
        return self.constant

    def generate(self):
        return self.constant


class ColumnOutcome(namedtuple("ColumnOutcome", ["column", "getter", "reason"])):
    """Included(getter) when getter is set, otherwise Excluded(reason)"""

    __slots__ = ()

    @property
    def included(self):
        return self.getter is not None


class BuildReport(object):
    """Per-column result of building a row template"""

    def __init__(self):
        self.outcomes = []

    def include(self, column, getter):
        self.outcomes.append(ColumnOutcome(column, getter, None))

    def exclude(self, column, reason):
        self.outcomes.append(ColumnOutcome(column, None, reason))

    @property
    def included(self):
        return [o for o in self.outcomes if o.included]

    @property
    def excluded(self):
        return [o for o in self.outcomes if not o.included]

    def excluded_names(self):
        return [o.column.name for o in self.excluded]


class RowTemplate(object):
    """
    Ordered getters for the insertable columns of one table.

    Built once per run and only read afterwards. String literals are
    rendered for the session sql_mode the template was built against.
    """

    def __init__(self, schema, table, columns, getters, no_backslash_escapes=False):
        if len(columns) != len(getters):
            raise ValueError("columns and getters differ in length")
        self.schema = schema
        self.table = table
        self.columns = list(columns)
        self.getters = list(getters)
        self.no_backslash_escapes = no_backslash_escapes

    @property
    def column_names(self):
        return [c.name for c in self.columns]

    def generate_row(self):
        return [g.value() for g in self.getters]

    def render_row(self, values):
        return [g.literal(v, self.no_backslash_escapes) for g, v in zip(self.getters, values)]

    def __len__(self):
        return len(self.getters)


def make_getter(column, rng, faker, now, null_frequency=NULL_FREQUENCY):
    """
    Select the generator for a column by its SQL type.

    Returns:
        Getter instance, or None if the type is not supported
    """
    sql_type = column.sql_type
    allow_null = bool(column.is_nullable)
    opts = {"rng": rng, "null_frequency": null_frequency}

    if sql_type is None:
        return None
    if sql_type == SqlType.TINYINT and declared_size(column.column_type) == 1:
        return RandomIntRange(column.name, 0, 1, allow_null, **opts)
    if sql_type in MAX_VALUES:
        return RandomInt(column.name, MAX_VALUES[sql_type], allow_null, **opts)
    if sql_type == SqlType.YEAR:
        return RandomIntRange(column.name, now.year - 1, now.year, allow_null, **opts)
    if sql_type in (SqlType.FLOAT, SqlType.DOUBLE, SqlType.DECIMAL):
        scale = column.numeric_scale if sql_type == SqlType.DECIMAL else None
        return RandomDecimal(column.name, column.integer_digits, scale, allow_null, **opts)
    if sql_type in TEXT_TYPES:
        return RandomString(column.name, column.char_max_length, allow_null, faker=faker, **opts)
    if sql_type in BINARY_TYPES:
        return RandomBinary(column.name, column.char_max_length, allow_null, faker=faker, **opts)
    if sql_type == SqlType.DATE:
        return RandomDate(column.name, allow_null, now=now, **opts)
    if sql_type in (SqlType.DATETIME, SqlType.TIMESTAMP):
        return RandomDateTime(column.name, allow_null, now=now, **opts)
    if sql_type == SqlType.TIME:
        return RandomTime(column.name, allow_null, **opts)
    if sql_type == SqlType.ENUM:
        return RandomEnum(column.name, column.enum_values, allow_null, **opts)
    if sql_type == SqlType.SET:
        return RandomSet(column.name, column.enum_values, allow_null, **opts)
    if sql_type == SqlType.JSON:
        return RandomJson(column.name, allow_null, faker=faker, **opts)
    return None


def build_row_template(conn, table, rng=None, sample_size=DEFAULT_SAMPLE_SIZE,
                       null_frequency=NULL_FREQUENCY, now=None, sampler=get_samples):
    """
    Build the row template for a table.

    Columns are visited in declaration order. Auto-increment primary keys
    are skipped, foreign key columns get a sample of existing values, and
    everything else is dispatched on its SQL type. Columns that cannot be
    generated are left out of the template and reported, the run goes on
    with the remaining ones.

    Args:
        conn: PyMySQL connection used for foreign key sampling
        table: TableMeta
        rng: random.Random driving every getter
        sample_size: Number of values cached per foreign key column
        null_frequency: NULL percentage for nullable columns
        now: Anchor for date/time getters (default: datetime.now())
        sampler: Callable with the signature of fk_sampler.get_samples

    Returns:
        Tuple of (RowTemplate, BuildReport)
    """
    rng = rng or random.Random()
    now = now or datetime.now()
    faker = Faker()
    faker.seed_instance(rng.getrandbits(32))
    report = BuildReport()

    for col in table.columns:
        if col.is_auto_increment_pk:
            report.exclude(col, "auto_increment primary key")
            continue

        getter_rng = random.Random(rng.getrandbits(64))

        if col.foreign_key is not None:
            fk = col.foreign_key
            try:
                samples = sampler(conn, fk.referenced_schema, fk.referenced_table,
                                  fk.referenced_column, sample_size, col.sql_type)
            except SamplingError as e:
                print("WARNING: cannot get samples for field {0!r}: {1}".format(col.name, e),
                      file=sys.stderr)
                report.exclude(col, "foreign key sampling failed: {0}".format(e))
                continue
            if not samples:
                print("WARNING: referenced table {0}.{1} is empty, skipping field {2!r}".format(
                    fk.referenced_schema, fk.referenced_table, col.name), file=sys.stderr)
                report.exclude(col, "referenced table {0}.{1} is empty".format(
                    fk.referenced_schema, fk.referenced_table))
                continue
            report.include(col, RandomSample(col.name, samples, bool(col.is_nullable),
                                             rng=getter_rng, null_frequency=null_frequency))
            continue

        try:
            getter = make_getter(col, getter_rng, faker, now, null_frequency)
        except ValueError as e:
            getter = None
            debug_print("Cannot build getter for {0}: {1}".format(col.name, e))
        if getter is None:
            print("WARNING: cannot get field type: {0}: {1}".format(col.name, col.data_type),
                  file=sys.stderr)
            report.exclude(col, "unsupported type {0!r}".format(col.data_type))
            continue
        report.include(col, getter)

    included = report.included
    template = RowTemplate(table.schema, table.name,
                           [o.column for o in included], [o.getter for o in included],
                           session_no_backslash_escapes(conn))
    debug_print("{0}.{1}: {2} insertable columns, excluded: {3}".format(
        table.schema, table.name, len(template), report.excluded_names()))
    return template, report
