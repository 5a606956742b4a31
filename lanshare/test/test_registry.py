import asyncio
import os

from lanshare.common.errors import DirectoryUnavailable, WriteFailure, NotFound, DeleteFailure
from lanshare.storage.registry import FileRegistry


def test_directory_created_lazily(tmp_path):
    upload_dir = tmp_path / 'nested' / 'uploads'
    registry = FileRegistry(str(upload_dir))
    assert not upload_dir.exists()

    names, err = asyncio.run(registry.list())
    assert err is None
    assert names == []
    assert upload_dir.is_dir()

def test_store_list_delete(tmp_path):
    registry = FileRegistry(str(tmp_path / 'uploads'))

    async def scenario():
        path, err = await registry.store('a.txt', b'alpha')
        assert err is None
        assert path == os.path.join(registry.upload_dir, 'a.txt')
        _, err = await registry.store('b.bin', memoryview(b'xxbetaxx')[2:6])
        assert err is None

        names, err = await registry.list()
        assert err is None
        assert sorted(names) == ['a.txt', 'b.bin']

        with open(registry.get_path('b.bin'), 'rb') as f:
            assert f.read() == b'beta'

        res, err = await registry.delete('a.txt')
        assert err is None
        assert res is True
        names, err = await registry.list()
        assert names == ['b.bin']

    asyncio.run(scenario())

def test_store_overwrites(tmp_path):
    registry = FileRegistry(str(tmp_path / 'uploads'))

    async def scenario():
        await registry.store('same.txt', b'first version')
        await registry.store('same.txt', b'second')
        with open(registry.get_path('same.txt'), 'rb') as f:
            assert f.read() == b'second'
        names, _ = await registry.list()
        assert names == ['same.txt']

    asyncio.run(scenario())

def test_store_empty_file(tmp_path):
    registry = FileRegistry(str(tmp_path / 'uploads'))
    path, err = asyncio.run(registry.store('empty', b''))
    assert err is None
    assert os.path.getsize(path) == 0

def test_list_unavailable(tmp_path):
    blocker = tmp_path / 'not_a_dir'
    blocker.write_bytes(b'')
    registry = FileRegistry(str(blocker))
    names, err = asyncio.run(registry.list())
    assert names is None
    assert isinstance(err, DirectoryUnavailable)
    assert isinstance(err.innerexception, OSError)

def test_store_failure_leaves_nothing(tmp_path):
    upload_dir = tmp_path / 'uploads'
    registry = FileRegistry(str(upload_dir))
    # a directory in the way of the final name makes the rename fail
    (upload_dir / 'taken').mkdir(parents=True)
    (upload_dir / 'taken' / 'inner').write_bytes(b'')
    path, err = asyncio.run(registry.store('taken', b'data'))
    assert path is None
    assert isinstance(err, WriteFailure)
    assert os.listdir(str(upload_dir)) == ['taken']
    assert os.listdir(registry.temp_dir) == []

def test_store_failure_when_directory_cannot_be_created(tmp_path):
    blocker = tmp_path / 'file'
    blocker.write_bytes(b'')
    registry = FileRegistry(str(blocker / 'uploads'))
    path, err = asyncio.run(registry.store('a.txt', b'data'))
    assert path is None
    assert isinstance(err, WriteFailure)

def test_delete_missing(tmp_path):
    registry = FileRegistry(str(tmp_path))
    res, err = asyncio.run(registry.delete('nope.txt'))
    assert res is None
    assert isinstance(err, NotFound)

def test_delete_failure(tmp_path):
    registry = FileRegistry(str(tmp_path))
    (tmp_path / 'subdir').mkdir()
    res, err = asyncio.run(registry.delete('subdir'))
    assert res is None
    assert isinstance(err, DeleteFailure)
    assert (tmp_path / 'subdir').is_dir()

def test_temp_files_stay_out_of_upload_dir(tmp_path):
    registry = FileRegistry(str(tmp_path / 'uploads'))
    assert registry.temp_dir == str(tmp_path / '.lanshare-tmp')

    async def scenario():
        await registry.store('a.txt', b'alpha')
        assert os.listdir(registry.upload_dir) == ['a.txt']
        assert os.listdir(registry.temp_dir) == []

    asyncio.run(scenario())

def test_custom_temp_dir(tmp_path):
    registry = FileRegistry(str(tmp_path / 'uploads'), temp_dir=str(tmp_path / 'scratch'))
    path, err = asyncio.run(registry.store('a.txt', b'alpha'))
    assert err is None
    assert os.listdir(str(tmp_path / 'scratch')) == []
    with open(path, 'rb') as f:
        assert f.read() == b'alpha'

def test_uploading_suffix_is_an_ordinary_name(tmp_path):
    registry = FileRegistry(str(tmp_path / 'uploads'))

    async def scenario():
        _, err = await registry.store('backup.uploading', b'precious')
        assert err is None
        names, err = await registry.list()
        assert err is None
        assert names == ['backup.uploading']

    asyncio.run(scenario())

def test_store_does_not_touch_similarly_named_file(tmp_path):
    registry = FileRegistry(str(tmp_path / 'uploads'))

    async def scenario():
        await registry.store('backup.uploading', b'precious')
        await registry.store('backup', b'newer')
        names, _ = await registry.list()
        assert sorted(names) == ['backup', 'backup.uploading']
        with open(registry.get_path('backup.uploading'), 'rb') as f:
            assert f.read() == b'precious'
        with open(registry.get_path('backup'), 'rb') as f:
            assert f.read() == b'newer'

    asyncio.run(scenario())
