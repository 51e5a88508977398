"""Catalog of academic choices used by the period and registration forms.

Selections cascade: semesters depend on the year, sections on year and
department, subjects on year, semester and department, rooms on the block.
"""

YEARS = ['1', '2', '3', '4']

SEMESTERS = {
    '1': ['1-1', '1-2'],
    '2': ['2-1', '2-2'],
    '3': ['3-1', '3-2'],
    '4': ['4-1', '4-2'],
}

DEPARTMENTS = ['CSE', 'IT', 'DS', 'AIML']

SECTIONS = {
    '1': {'CSE': ['A', 'B'], 'IT': ['A'], 'DS': ['A'], 'AIML': ['A']},
    '2': {'CSE': ['A', 'B', 'C'], 'IT': ['A', 'B'], 'DS': ['A', 'B'], 'AIML': ['A']},
    '3': {'CSE': ['A', 'B', 'C', 'D'], 'IT': ['A', 'B', 'C'], 'DS': ['A', 'B'], 'AIML': ['A', 'B']},
    '4': {'CSE': ['A', 'B', 'C', 'D', 'E'], 'IT': ['A', 'B', 'C'], 'DS': ['A', 'B', 'C'], 'AIML': ['A', 'B', 'C']},
}

SUBJECTS = {
    '1': {
        '1-1': {
            'CSE': ['C Programming', 'Engineering Maths', 'English'],
            'IT': ['Problem Solving', 'Basic Maths'],
            'DS': ['Intro to Data Science'],
            'AIML': ['Basics of AI'],
        },
        '1-2': {
            'CSE': ['Python Programming', 'Environmental Science'],
            'IT': ['Digital Logic', 'Discrete Maths'],
            'DS': ['Statistics Basics'],
            'AIML': ['Linear Algebra', 'Intro to ML'],
        },
    },
    '2': {
        '2-1': {
            'CSE': ['DSA', 'DBMS', 'OS'],
            'IT': ['Web Development', 'Software Engineering'],
            'DS': ['Machine Learning', 'Statistics'],
            'AIML': ['ML', 'DL'],
        },
        '2-2': {
            'CSE': ['OOPs with Java', 'Computer Architecture'],
            'IT': ['UI/UX', 'Database Systems'],
            'DS': ['Data Wrangling', 'Data Visualization'],
            'AIML': ['ML Projects', 'Advanced DL'],
        },
    },
    '3': {
        '3-1': {
            'CSE': ['Computer Networks', 'Theory of Computation'],
            'IT': ['Cloud Computing', 'Cyber Security'],
            'DS': ['Data Engineering', 'Probability and Statistics', 'Optimization Techniques', 'DLCO'],
            'AIML': ['NLP', 'ML Optimization'],
        },
        '3-2': {
            'CSE': ['Compiler Design', 'Big Data'],
            'IT': ['IoT', 'Ethical Hacking'],
            'DS': ['AI Tools', 'Model Deployment'],
            'AIML': ['Vision Systems', 'Transformer Models'],
        },
    },
    '4': {
        '4-1': {
            'CSE': ['Project Work', 'AI', 'ML'],
            'IT': ['Capstone', 'DevOps'],
            'DS': ['Big Data', 'Capstone'],
            'AIML': ['Computer Vision', 'Advanced DL'],
        },
        '4-2': {
            'CSE': ['Internship', 'Seminar'],
            'IT': ['Internship', 'Product Design'],
            'DS': ['Internship', 'Thesis'],
            'AIML': ['Research Paper', 'Final Project'],
        },
    },
}

PERIODS = ['1', '2', '3', '4', '5', '6', '7', '8']

BLOCKS = {
    'Block-A': ['101', '102', '103'],
    'Block-B': ['201', '202', '203'],
    'Block-C': ['301', '302', '303'],
    'Block-D': ['401', '402', '403'],
}

ROLES = [
    ('faculty', 'Faculty'),
    ('student', 'Student'),
    ('admin', 'Admin'),
]


def semesters_for(year):
    return list(SEMESTERS.get(year or '', []))


def sections_for(year, department):
    return list(SECTIONS.get(year or '', {}).get(department or '', []))


def subjects_for(year, semester, department):
    return list(SUBJECTS.get(year or '', {}).get(semester or '', {}).get(department or '', []))


def rooms_for(block):
    return list(BLOCKS.get(block or '', []))


def blocks():
    return list(BLOCKS)


def as_choices(values, placeholder=None):
    """Turn a list of values into WTForms ``(value, label)`` pairs."""
    choices = [(value, value) for value in values]
    if placeholder:
        choices.insert(0, ('', placeholder))
    return choices
