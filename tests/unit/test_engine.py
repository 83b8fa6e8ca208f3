"""
Unit tests for the mongoengine backend.

Tests cover:
- Primitive field mapping
- String transforms and constraints
- Number/date bounds and custom validators
- References, arrays and embedded documents
- Meta options and attached behavior

No database connection is needed: documents are only built and validated.
"""

import datetime
import decimal
import logging
import re

import mongoengine
import pytest
from bson import Decimal128, ObjectId

from docschema import engine
from docschema.config import DocSchemaConfig
from docschema.document import Document, schema
from docschema.registry import EntityRegistry
from docschema.types import field

CONFIG = DocSchemaConfig()


@pytest.fixture
def registry():
    return EntityRegistry()


class TestPrimitiveMapping:
    """Tests for primitive fields."""

    def test_primitive_field_classes(self, registry):
        """Each primitive maps to its mongoengine field."""

        class EnginePrimitives(Document, registry=registry):
            text: str = field()
            number: float = field()
            when: datetime.datetime = field()
            blob: bytes = field()
            flag: bool = field()
            oid: ObjectId = field()
            amount: decimal.Decimal = field()
            extra: dict = field()

        fields = EnginePrimitives.get_model(CONFIG)._fields

        assert isinstance(fields["text"], mongoengine.StringField)
        assert isinstance(fields["number"], mongoengine.FloatField)
        assert isinstance(fields["when"], mongoengine.DateTimeField)
        assert isinstance(fields["blob"], mongoengine.BinaryField)
        assert isinstance(fields["flag"], mongoengine.BooleanField)
        assert isinstance(fields["oid"], mongoengine.ObjectIdField)
        assert isinstance(fields["amount"], mongoengine.Decimal128Field)
        assert isinstance(fields["extra"], mongoengine.DictField)

    def test_decimal_keeps_precision(self, registry):
        """Decimals are stored as BSON Decimal128 without rounding."""

        class EnginePrice(Document, registry=registry):
            amount: decimal.Decimal = field()

        value = decimal.Decimal("0.1000000000000000000001")
        stored = EnginePrice.get_model(CONFIG)(amount=value).to_mongo()["amount"]

        assert isinstance(stored, Decimal128)
        assert stored.to_decimal() == value

    def test_common_options(self, registry):
        """Document-level options reach the field."""

        class EngineAccount(Document, registry=registry):
            email: str = field(required=True, unique=True, sparse=True, alias="mail")
            plan: str = field(default="free")

        fields = EngineAccount.get_model(CONFIG)._fields

        assert fields["email"].required is True
        assert fields["email"].unique is True
        assert fields["email"].sparse is True
        assert fields["email"].db_field == "mail"
        assert fields["plan"].default == "free"

    def test_conditional_required_warns(self, registry, caplog):
        """Callable required is logged and dropped."""

        class EngineConditional(Document, registry=registry):
            note: str = field(required=lambda: True)

        with caplog.at_level(logging.WARNING, logger="docschema.engine"):
            model = EngineConditional.get_model(CONFIG)

        assert model._fields["note"].required is False
        assert "Conditional 'required'" in caplog.text


class TestStringFields:
    """Tests for string constraints and transforms."""

    def test_string_constraints(self, registry):
        """Lengths and enum map to mongoengine options."""

        class EngineCode(Document, registry=registry):
            code: str = field(match=r"^[a-z]+$", minlength=2, maxlength=5, enum=["ab", "abc"])

        code = EngineCode.get_model(CONFIG)._fields["code"]

        assert code.regex is None
        assert code.min_length == 2
        assert code.max_length == 5
        assert list(code.choices) == ["ab", "abc"]

    def test_match_keeps_pattern_flags(self, registry):
        """Compiled patterns are searched with their flags."""

        class EngineFlagged(Document, registry=registry):
            code: str = field(match=re.compile(r"ab", re.IGNORECASE))

        Model = EngineFlagged.get_model(CONFIG)

        Model(code="AB").validate()
        Model(code="xab").validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(code="cd").validate()

    def test_match_is_unanchored(self, registry):
        """String patterns match anywhere in the value."""

        class EngineSlug(Document, registry=registry):
            slug: str = field(match=r"[0-9]+")

        Model = EngineSlug.get_model(CONFIG)

        Model(slug="post-42-draft").validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(slug="post").validate()

    def test_match_on_array_items(self, registry):
        """Each element of a string array is checked."""

        class EngineLabels(Document, registry=registry):
            labels: list[str] = field(match=r"^#")

        Model = EngineLabels.get_model(CONFIG)

        Model(labels=["#a", "#b"]).validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(labels=["#a", "b"]).validate()

    def test_enum_rejects_other_values(self, registry):
        """Values outside the enum fail validation."""

        class EngineStatus(Document, registry=registry):
            status: str = field(enum=("todo", "done"))

        Model = EngineStatus.get_model(CONFIG)

        Model(status="todo").validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(status="bogus").validate()

    def test_transforms_on_assignment(self, registry):
        """trim and lowercase apply when values are set."""

        class EngineHandle(Document, registry=registry):
            handle: str = field(trim=True, lowercase=True)

        Model = EngineHandle.get_model(CONFIG)

        assert isinstance(Model._fields["handle"], engine.TransformStringField)
        assert Model(handle="  ADA ").handle == "ada"

    def test_transforms_on_array_items(self, registry):
        """Array elements carry the transform."""

        class EngineTags(Document, registry=registry):
            tags: list[str] = field(uppercase=True)

        tags = EngineTags.get_model(CONFIG)._fields["tags"]

        assert isinstance(tags, mongoengine.ListField)
        assert isinstance(tags.field, engine.TransformStringField)
        assert tags.field.transform("a") == "A"


class TestValidation:
    """Tests for bounds and custom validators."""

    def test_number_bounds(self, registry):
        """min/max map to min_value/max_value."""

        class EngineAge(Document, registry=registry):
            age: int = field(min=0, max=150)

        Model = EngineAge.get_model(CONFIG)

        assert Model._fields["age"].min_value == 0
        assert Model._fields["age"].max_value == 150
        Model(age=30).validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(age=-1).validate()

    def test_date_bounds(self, registry):
        """Dates outside the bounds fail validation."""

        class EngineEvent(Document, registry=registry):
            at: datetime.datetime = field(
                min=datetime.datetime(2000, 1, 1),
                max=datetime.datetime(2030, 1, 1),
            )

        Model = EngineEvent.get_model(CONFIG)

        Model(at=datetime.datetime(2010, 6, 1)).validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(at=datetime.datetime(1999, 1, 1)).validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(at=datetime.datetime(2031, 1, 1)).validate()

    def test_validator_with_message(self, registry):
        """Mapping validators report their message."""

        class EngineShout(Document, registry=registry):
            word: str = field(
                validate={"validator": lambda v: v.isupper(), "message": "{VALUE} is quiet"}
            )

        Model = EngineShout.get_model(CONFIG)

        Model(word="HEY").validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(word="hey").validate()

    def test_validator_list(self, registry):
        """Functions and patterns can be combined."""

        class EngineSku(Document, registry=registry):
            sku: str = field(validate=[re.compile(r"^SKU-"), lambda v: len(v) < 10])

        Model = EngineSku.get_model(CONFIG)

        Model(sku="SKU-1").validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(sku="ABC-1").validate()
        with pytest.raises(mongoengine.ValidationError):
            Model(sku="SKU-123456789").validate()

    def test_unsupported_validator_raises(self):
        """Validators must be callables, patterns or mappings."""
        with pytest.raises(TypeError, match="Unsupported validator"):
            engine._checks(42)


class TestEntityFields:
    """Tests for references and embedded documents."""

    def test_reference_field(self, registry):
        """References point at the target by name."""

        class EngineAuthor(Document, registry=registry):
            name: str = field()

        class EngineBook(Document, registry=registry):
            author = field(ref=EngineAuthor)
            editors: list = field(ref="EngineAuthor")

        fields = EngineBook.get_model(CONFIG)._fields

        assert isinstance(fields["author"], mongoengine.ReferenceField)
        assert fields["author"].document_type_obj == "EngineAuthor"
        assert isinstance(fields["editors"], mongoengine.ListField)
        assert isinstance(fields["editors"].field, mongoengine.ReferenceField)

    def test_embedded_document(self, registry):
        """Embedded entities become EmbeddedDocument classes."""

        class EngineAddress(Document, registry=registry):
            city: str = field(required=True)

        class EngineUser(Document, registry=registry):
            address: EngineAddress = field()
            history: list[EngineAddress] = field(_id=True)

        fields = EngineUser.get_model(CONFIG)._fields

        address = fields["address"]
        assert isinstance(address, mongoengine.EmbeddedDocumentField)
        assert issubclass(address.document_type_obj, mongoengine.EmbeddedDocument)
        assert address.document_type_obj.__name__ == "EngineUser_address"
        assert "city" in address.document_type_obj._fields
        assert "id" not in address.document_type_obj._fields

        history = fields["history"]
        assert isinstance(history, mongoengine.ListField)
        assert "id" in history.field.document_type_obj._fields


class TestDocumentClass:
    """Tests for the generated Document class."""

    def test_collection_from_schema_options(self, registry):
        """collection is passed to meta."""

        @schema(collection="engine_books", timestamps=True)
        class EngineShelf(Document, registry=registry):
            title: str = field()

        Model = EngineShelf.get_model(CONFIG)

        assert issubclass(Model, mongoengine.Document)
        assert Model.__name__ == "EngineShelf"
        assert Model._get_collection_name() == "engine_books"

    def test_behavior_attached(self, registry):
        """Virtuals, methods and statics land on the model."""

        class EnginePerson(Document, registry=registry):
            first: str = field()
            last: str = field()
            species = "human"

            @property
            def full(self):
                return f"{self.first} {self.last}"

            @full.setter
            def full(self, value):
                self.first, self.last = value.split(" ", 1)

            def greet(self):
                return f"hi {self.first}"

            @staticmethod
            def blank():
                return {"first": "", "last": ""}

        Model = EnginePerson.get_model(CONFIG)
        person = Model(first="Ada", last="Lovelace")

        assert person.full == "Ada Lovelace"
        person.full = "Grace Hopper"
        assert person.first == "Grace"
        assert person.greet() == "hi Grace"
        assert Model.blank() == {"first": "", "last": ""}
        assert Model.species == "human"

    def test_meta_translation(self):
        """Known options map to meta keys; others are dropped."""
        meta = engine._meta(
            "EngineThing",
            {
                "collection": "things",
                "auto_index": False,
                "shard_key": {"tag": 1, "name": 1},
                "timestamps": True,
            },
            ["email"],
        )

        assert meta == {
            "collection": "things",
            "auto_create_index": False,
            "shard_key": ("tag", "name"),
            "indexes": ["email"],
        }

    def test_unmapped_options_warn(self, registry, caplog):
        """Options without a mongoengine equivalent are logged as warnings."""

        @schema(versionKey=False, read="secondary")
        class EngineVersioned(Document, registry=registry):
            title: str = field()

        with caplog.at_level(logging.WARNING, logger="docschema.engine"):
            EngineVersioned.get_model(CONFIG)

        assert "Option 'versionKey'" in caplog.text
        assert "Option 'read'" in caplog.text


class TestTimestamps:
    """Tests for the timestamps option."""

    def test_default_fields(self, registry):
        """timestamps=True adds createdAt and updatedAt."""

        @schema(timestamps=True)
        class EngineNote(Document, registry=registry):
            title: str = field()

        Model = EngineNote.get_model(CONFIG)

        assert issubclass(Model, engine.TimestampedDocument)
        assert isinstance(Model._fields["createdAt"], mongoengine.DateTimeField)
        assert isinstance(Model._fields["updatedAt"], mongoengine.DateTimeField)

    def test_stamp_keeps_creation_time(self, registry):
        """Only the update time moves on later stamps."""

        @schema(timestamps=True)
        class EngineDraft(Document, registry=registry):
            title: str = field()

        draft = EngineDraft.get_model(CONFIG)(title="a")
        first = datetime.datetime(2024, 1, 1)
        later = datetime.datetime(2024, 2, 1)

        draft.stamp(first)
        draft.stamp(later)

        assert draft.createdAt == first
        assert draft.updatedAt == later

    def test_renamed_and_disabled_keys(self, registry):
        """A mapping renames a key or turns it off."""

        @schema(timestamps={"createdAt": "created_on", "updatedAt": False})
        class EngineLog(Document, registry=registry):
            line: str = field()

        fields = EngineLog.get_model(CONFIG)._fields

        assert "created_on" in fields
        assert "createdAt" not in fields
        assert "updatedAt" not in fields

    def test_save_stamps(self, registry, monkeypatch):
        """save() sets both times before writing."""
        monkeypatch.setattr(mongoengine.Document, "save", lambda self, *a, **kw: self)

        @schema(timestamps=True)
        class EngineTicket(Document, registry=registry):
            subject: str = field()

        ticket = EngineTicket.get_model(CONFIG)(subject="help")
        ticket.save()

        assert ticket.createdAt is not None
        assert ticket.updatedAt == ticket.createdAt

    def test_disabled(self, registry):
        """timestamps=False builds a plain Document."""

        @schema(timestamps=False)
        class EnginePlain(Document, registry=registry):
            subject: str = field()

        Model = EnginePlain.get_model(CONFIG)

        assert not issubclass(Model, engine.TimestampedDocument)
        assert "createdAt" not in Model._fields
