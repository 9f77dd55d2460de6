import pytest


@pytest.fixture
def sample_fortune():
    return {
        "zodiac_animal": "Horse",
        "zodiac_element": "Metal",
        "personality": "Restless and bright, you gallop toward what others only discuss.",
        "five_elements": {
            "dominant": "Metal",
            "reading": "Metal sharpens you; the Fire year tempers the blade.",
        },
        "wealth": "Money arrives through movement rather than hoarding.",
        "relationships": "You love loyally once you stop running.",
        "compatibility": {
            "reading": "Tigers and Dogs ride alongside you; the Rat pulls the other way.",
            "harmonious": ["Tiger", "Dog"],
            "challenging": ["Rat", "Ox"],
        },
        "overall": "Ride the fire without letting it ride you.",
        "lucky_numbers": [3, 7],
        "lucky_colors": ["Crimson", "Gold"],
        "lucky_directions": ["South", "Southeast"],
    }
