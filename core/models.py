import uuid

from django.db import models


def generate_guid() -> str:
    return uuid.uuid4().hex


class Document(models.Model):
    guid = models.CharField(max_length=64, unique=True, default=generate_guid)
    slug = models.SlugField(max_length=255, unique=True)
    title = models.CharField(max_length=255, blank=True)
    doc_type = models.CharField(max_length=64, db_index=True)
    data = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["slug", "pk"]

    def __str__(self):
        return f"{self.doc_type}:{self.slug}"

    def as_record(self) -> dict:
        """Return the document as a plain record that areas and loaders can walk."""
        data = self.data if isinstance(self.data, dict) else {}
        return {
            **data,
            "_id": self.guid,
            "slug": self.slug,
            "title": self.title,
            "type": self.doc_type,
        }
