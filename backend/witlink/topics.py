import random

TOPICS = [
    {'name': 'History of Artificial Intelligence'},
    {'name': 'Basic Calculus'},
    {'name': 'World Geography'},
    {'name': 'Cooking Techniques'},
    {'name': 'Modern Art'},
    {'name': 'Quantum Physics'},
    {'name': 'Classic Literature'},
    {'name': 'Computer Programming'},
]


def random_topic() -> str:
    return random.choice(TOPICS)['name']
