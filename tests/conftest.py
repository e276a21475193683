import pytest
import sys
from pathlib import Path
from PIL import Image

# Add src to sys.path so we can import worksheet_toolkit
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if SRC_PATH.as_posix() not in sys.path:
    sys.path.insert(0, SRC_PATH.as_posix())

from worksheet_toolkit.core.models import Block, BlockType, Document
from worksheet_toolkit.history.scheduler import VirtualClock


# Common test fixtures
@pytest.fixture
def virtual_clock():
    """Clock that only moves when the test advances it."""
    return VirtualClock()


@pytest.fixture
def make_block():
    """Factory for blocks with predictable ids."""
    def _create(block_id: str, content: str = "", block_type: BlockType = BlockType.EXAMPLE, **kwargs):
        return Block(id=block_id, type=block_type, content=content, **kwargs)
    return _create


@pytest.fixture
def sample_document(make_block):
    """Small document with a concept block, an example and a break."""
    return Document(blocks=[
        make_block("c1", "정의 [개념빈칸:_답]본문[/개념빈칸]", BlockType.CONCEPT, label="개념1"),
        make_block("e1", "$x^2$ 의 값은? [빈칸:a]", label="1"),
        make_block("br", block_type=BlockType.BREAK),
        make_block("e2", "[표_2x2] : (1x1_\"A\"), (2x2_\"B\")", label="2"),
    ])


@pytest.fixture
def sample_image(tmp_path: Path):
    """Create a simple test image."""
    img = Image.new("RGB", (200, 100), color="white")
    img_path = tmp_path / "sample.png"
    img.save(img_path)
    return img_path
