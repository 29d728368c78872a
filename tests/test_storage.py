import asyncio

import pytest

from errors import RecordNotFound, RuleViolation
from storage import ImageUpload, MemoryImageStore


def _png(name="photo.PNG"):
    return ImageUpload(filename=name, content_type="image/png", data=b"\x89PNG...")


def test_upload_returns_public_url(images):
    url = images.upload(_png(), "products")
    assert url.startswith("http://testserver/media/products/")
    assert url.endswith(".png")
    path = images.path_from_url(url)
    assert images.open(path) == (b"\x89PNG...", "image/png")


def test_each_upload_gets_its_own_name(images):
    assert images.upload(_png(), "a") != images.upload(_png(), "a")


def test_non_images_are_refused(images):
    with pytest.raises(RuleViolation):
        images.upload(ImageUpload("notes.txt", "text/plain", b"hi"))
    assert images.blobs == {}


def test_delete_by_url(images):
    url = images.upload(_png())
    images.delete(url)
    assert images.blobs == {}
    with pytest.raises(RecordNotFound):
        images.delete(url)


def test_delete_foreign_url(images):
    with pytest.raises(RecordNotFound):
        images.delete("https://cdn.example.com/a.png")


def test_upload_many():
    store = MemoryImageStore("http://testserver")
    urls = asyncio.run(store.upload_many([_png("a.png"), _png("b.jpg")], "banners"))
    assert len(urls) == 2
    assert urls[1].endswith(".jpg")
    assert len(store.blobs) == 2


def test_upload_many_fails_as_a_batch():
    store = MemoryImageStore("http://testserver")
    batch = [_png(), ImageUpload("x.pdf", "application/pdf", b"%PDF")]
    with pytest.raises(RuleViolation):
        asyncio.run(store.upload_many(batch))
    assert store.blobs == {}
