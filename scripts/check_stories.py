#!/usr/bin/env python3
"""
Story Check Script
Loads the story catalog with the current configuration and reports cues
the face cannot show (unknown emotions) and timelines whose cue times go
backwards. Playback never sorts cues, so out-of-order cues play as
authored.
"""

import asyncio
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from storyteller.core.config import ConfigManager
from storyteller.core.errors import CatalogError
from storyteller.main import StoryTeller
from storyteller.audio.mock_transport import MockAudioTransport
from storyteller.display.sink import MemoryDisplaySink


async def check_stories() -> bool:
    """Check every story in the catalog. Returns True if no problem was found."""
    config = ConfigManager().load_config()
    app = StoryTeller(config, audio=MockAudioTransport(), display=MemoryDisplaySink())

    print("🔍 Checking stories")
    print("=" * 60)
    print(f"   Index:  {config.stories_index}")
    print(f"   Source: {app.source.name}")

    try:
        count = await app.catalog.load()
    except CatalogError as e:
        print(f"❌ Failed to load catalog: {e}")
        return False

    print(f"✅ {count} stories loaded\n")

    known = config.faces.emotion_images
    problems = 0

    for index, story in enumerate(app.catalog.stories):
        print(f"📖 [{index}] {story.name} ({len(story.cues)} cues)")

        unknown = sorted({cue.emotion for cue in story.cues if cue.emotion not in known})
        if unknown:
            problems += 1
            print(f"   ⚠️  Unknown emotions (ignored at playback): {', '.join(unknown)}")

        for previous, cue in zip(story.cues, story.cues[1:]):
            if cue.time < previous.time:
                problems += 1
                print(f"   ⚠️  Cue at {cue.time:.2f}s follows cue at {previous.time:.2f}s")

        if story.preview_ref == "":
            print("   ℹ️  No preview clip")

    print("\n" + "=" * 60)
    if problems:
        print(f"🎯 Check complete: {problems} warning(s)")
    else:
        print("🎯 Check complete: no problems found")
    return problems == 0


if __name__ == "__main__":
    sys.exit(0 if asyncio.run(check_stories()) else 1)
