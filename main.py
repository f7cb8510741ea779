#!/usr/bin/env python3
"""
QT Storyteller - Main Entry Point

Narrates children's stories through an animated robot face, showing
timed emotions in step with the narration.

Usage:
    python main.py                   # Open the face window
    python main.py --story 1         # Play the second story right away
    python main.py --list-stories    # Show available stories
    python main.py --headless        # Mock audio and display
"""
import sys
from pathlib import Path

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from storyteller.main import main


if __name__ == "__main__":
    main()
