exams = [

    {
        "title": "General Science / علوم عامة",
        "description": "Test your knowledge on basic physics and biology.",
        "questions": [
            {
                "text": "What is the powerhouse of the cell?",
                "options": ["Nucleus", "Mitochondria", "Ribosome", "Golgi Apparatus"],
                "correct_answer": 1
            },
            {
                "text": "Which planet is known as the Red Planet?",
                "options": ["Venus", "Mars", "Jupiter", "Saturn"],
                "correct_answer": 1
            },
            {
                "text": "What is the chemical symbol for Gold?",
                "options": ["Au", "Ag", "Fe", "Cu"],
                "correct_answer": 0
            }
        ]
    },
    {
        "title": "History / تاريخ",
        "description": "A quick look back at major historical events.",
        "questions": [
            {
                "text": "In which year did World War II end?",
                "options": ["1943", "1944", "1945", "1946"],
                "correct_answer": 2
            },
            {
                "text": "Who wrote 'Romeo and Juliet'?",
                "options": ["Charles Dickens", "Jane Austen", "William Shakespeare", "Mark Twain"],
                "answer": "William Shakespeare"
            }
        ]
    }

]
