"""
In-memory stand-in for the slice of a pymongo Database the document
handler touches. Equality filters only, plus unique indexes so duplicate
keys raise the real DuplicateKeyError.
"""

from copy import deepcopy
from types import SimpleNamespace

from bson import ObjectId
from pymongo.errors import DuplicateKeyError


def _matches(doc: dict, filter_: dict) -> bool:
    return all(doc.get(key) == value for key, value in filter_.items())


def _project(doc: dict, projection: dict | None) -> dict:
    if not projection:
        return deepcopy(doc)
    keep = {key for key, flag in projection.items() if flag}
    out = {key: deepcopy(value) for key, value in doc.items() if key in keep}
    if projection.get("_id", 1) and "_id" in doc:
        out["_id"] = doc["_id"]
    return out


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.docs: list[dict] = []
        self.unique_keys: list[tuple] = []

    def create_index(self, keys, unique=False, sparse=False, **kwargs):
        fields = tuple(field for field, _ in keys)
        if unique:
            self.unique_keys.append((fields, sparse))
        return "_".join(f"{field}_{direction}" for field, direction in keys)

    def _check_unique(self, candidate: dict, ignore=None) -> None:
        for fields, sparse in self.unique_keys:
            if sparse and any(field not in candidate for field in fields):
                continue
            key = tuple(candidate.get(field) for field in fields)
            for doc in self.docs:
                if doc is ignore:
                    continue
                if tuple(doc.get(field) for field in fields) == key:
                    raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: {fields}")

    def insert_one(self, document: dict):
        doc = deepcopy(document)
        doc.setdefault("_id", ObjectId())
        if any(existing["_id"] == doc["_id"] for existing in self.docs):
            raise DuplicateKeyError(f"E11000 duplicate key error collection: {self.name} index: _id_")
        self._check_unique(doc)
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"], acknowledged=True)

    def insert_many(self, documents):
        ids = [self.insert_one(document).inserted_id for document in documents]
        return SimpleNamespace(inserted_ids=ids, acknowledged=True)

    def find(self, filter_=None, projection=None, sort=None, limit=0, skip=0):
        docs = [doc for doc in self.docs if _matches(doc, filter_ or {})]
        for field, direction in reversed(sort or []):
            docs.sort(key=lambda doc: (doc.get(field) is None, doc.get(field)), reverse=direction < 0)
        docs = docs[skip:]
        if limit:
            docs = docs[:limit]
        return [_project(doc, projection) for doc in docs]

    def find_one(self, filter_=None, projection=None, sort=None, skip=0):
        found = self.find(filter_, projection=projection, sort=sort, limit=1, skip=skip)
        return found[0] if found else None

    def _update(self, filter_, update, many: bool):
        changes = update.get("$set", {})
        matched = modified = 0
        for doc in self.docs:
            if not _matches(doc, filter_):
                continue
            matched += 1
            candidate = {**doc, **changes}
            self._check_unique(candidate, ignore=doc)
            if candidate != doc:
                doc.update(deepcopy(changes))
                modified += 1
            if not many:
                break
        return SimpleNamespace(matched_count=matched, modified_count=modified, acknowledged=True)

    def update_one(self, filter_, update):
        return self._update(filter_, update, many=False)

    def update_many(self, filter_, update):
        return self._update(filter_, update, many=True)

    def _delete(self, filter_, many: bool):
        deleted = 0
        remaining = []
        for doc in self.docs:
            if _matches(doc, filter_) and (many or deleted == 0):
                deleted += 1
            else:
                remaining.append(doc)
        self.docs = remaining
        return SimpleNamespace(deleted_count=deleted, acknowledged=True)

    def delete_one(self, filter_):
        return self._delete(filter_, many=False)

    def delete_many(self, filter_):
        return self._delete(filter_, many=True)

    def count_documents(self, filter_):
        return sum(1 for doc in self.docs if _matches(doc, filter_))

    def aggregate(self, pipeline):
        docs = [deepcopy(doc) for doc in self.docs]
        for stage in pipeline:
            if "$match" in stage:
                docs = [doc for doc in docs if _matches(doc, stage["$match"])]
            elif "$limit" in stage:
                docs = docs[: stage["$limit"]]
            else:
                raise NotImplementedError(f"fake aggregate stage {stage}")
        return docs


class FakeDatabase:
    def __init__(self):
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def list_collection_names(self):
        return list(self.collections)
