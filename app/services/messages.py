"""User-facing texts, per tenant language (fr default, en)."""

DEFAULT_LANGUAGE = "fr"

MESSAGES = {
    "fr": {
        "quiz_unavailable": "Désolé, le quiz n'est pas disponible pour le moment. Réessayez plus tard.",
        "ai_unavailable": (
            "Merci pour votre message. Votre demande a bien été reçue, notre équipe vous répondra rapidement."
        ),
        "technical_error": "Désolé, je rencontre des difficultés techniques. Veuillez réessayer plus tard.",
        "question_header": "📋 Question {position}/{total}",
        "options_hint": "Répondez avec le numéro de votre choix.",
        "boolean_hint": 'Répondez par "Vrai" ou "Faux".',
        "free_text_hint": "Écrivez votre réponse.",
        "personal_hint": "✍️ Veuillez fournir votre réponse.",
        "answer_recorded": "✅ Merci, réponse enregistrée ! +{points} points",
        "points_hint": "🏆 Points possibles : {points}",
        "correct": "✅ Bonne réponse ! +{points} points",
        "incorrect": "❌ Mauvaise réponse. La bonne réponse était : {answer}",
        "incorrect_no_answer": "❌ Mauvaise réponse.",
        "completed": (
            "🎉 Félicitations ! Vous avez terminé le quiz avec un score de {score} points.\n"
            "Votre profil : {profile}\n\nMerci pour votre participation ! Envoyez \"quiz\" pour rejouer."
        ),
        "welcome": "🎯 Bienvenue dans le quiz !",
        "true": "Vrai",
        "false": "Faux",
    },
    "en": {
        "quiz_unavailable": "Sorry, the quiz is unavailable right now. Please try again later.",
        "ai_unavailable": (
            "Thank you for your message. Your request has been received and our team will get back to you shortly."
        ),
        "technical_error": "Sorry, I'm having technical difficulties. Please try again later.",
        "question_header": "📋 Question {position}/{total}",
        "options_hint": "Reply with the number of your choice.",
        "boolean_hint": 'Reply "True" or "False".',
        "free_text_hint": "Type your answer.",
        "personal_hint": "✍️ Please provide your answer.",
        "answer_recorded": "✅ Thanks, answer saved! +{points} points",
        "points_hint": "🏆 Points available: {points}",
        "correct": "✅ Correct! +{points} points",
        "incorrect": "❌ Wrong answer. The correct answer was: {answer}",
        "incorrect_no_answer": "❌ Wrong answer.",
        "completed": (
            "🎉 Congratulations! You finished the quiz with a score of {score} points.\n"
            "Your profile: {profile}\n\nThanks for playing! Send \"quiz\" to play again."
        ),
        "welcome": "🎯 Welcome to the quiz!",
        "true": "True",
        "false": "False",
    },
}


def get_message(key: str, language: str | None = None, **params) -> str:
    catalog = MESSAGES.get((language or DEFAULT_LANGUAGE).lower(), MESSAGES[DEFAULT_LANGUAGE])
    template = catalog.get(key) or MESSAGES[DEFAULT_LANGUAGE][key]
    return template.format(**params) if params else template
