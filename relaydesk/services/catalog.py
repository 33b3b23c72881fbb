from __future__ import annotations

EN: dict[str, str] = {
    "buttons.ask_question": "Ask a question",
    "buttons.my_requests": "My requests",
    "buttons.current_assignment": "Current request",
    "buttons.my_answers": "My answers",
    "buttons.statistics": "Statistics",
    "buttons.back": "Back",
    "buttons.confirm": "Confirm",
    "buttons.edit": "Edit",
    "buttons.confirm_answer": "Confirm answer",
    "buttons.edit_answer": "Edit answer",
    "buttons.reject_assignment": "Give up request",
    "buttons.take_request": "Take request",
    "buttons.approve": "Approve",
    "buttons.decline": "Decline",
    "prompts.select_category": "Choose a category for your request:\n\n{categories}",
    "prompts.enter_request": "Describe your request (at least {min} characters):",
    "prompts.confirm_request": "Please check your request before sending:\n\n{text}",
    "prompts.write_answer": "Write your answer to request #{request_id}:",
    "prompts.check_answer": "Please check your answer:\n\n{text}",
    "prompts.decline_reason": "Enter the reason for declining request #{request_id}:",
    "prompts.answer_decline_reason": "Enter a comment for the fulfiller on request #{request_id}:",
    "prompts.select_action": "Choose an action:",
    "success.request_sent": "Your request was sent for review.",
    "success.answer_sent": "Your answer was sent for review. You will be notified about the decision.",
    "success.assignment_rejected": "You gave up the request. It is back in the shared queue.",
    "success.request_taken": "Request taken. Check your private messages.",
    "success.decision_recorded": "Decision recorded.",
    "success.locale_changed": "Interface language updated.",
    "errors.general": "Something went wrong. Please try again later.",
    "errors.banned": "Your access to the service has been blocked.",
    "errors.not_permitted": "This action is not available to you.",
    "errors.no_categories": "No categories are available yet.",
    "errors.unknown_category": "Category not found. Please choose one from the list.",
    "errors.text_too_short": "The text is too short. Minimum length is {min} characters.",
    "errors.already_handled": "This request has already been handled by someone else.",
    "errors.assignment_held": "You already hold an active request.",
    "errors.no_active_assignment": "You have no active request.",
    "errors.stale_session": "This conversation is out of date and was reset.",
    "errors.not_found": "Request not found.",
    "errors.invalid_transition": "This action is not possible for the request in its current state.",
    "errors.role_demotion_unsupported": "Roles cannot be lowered.",
    "errors.category_in_use": "The category is used by existing requests.",
    "errors.category_exists": "A category with this name already exists.",
    "errors.empty_category_name": "Category name must not be empty.",
    "errors.empty_text": "The text must not be empty.",
    "errors.unsupported_locale": "This language is not supported.",
    "errors.store": "Something went wrong. Please try again later.",
    "errors.internal": "Something went wrong. Please try again later.",
    "notifications.new_request": "New request #{request_id}\nCategory: {category}\n\nRequest text:\n{text}",
    "notifications.request_approved": "Your request #{request_id} was approved and passed to the fulfillers.",
    "notifications.request_declined": "Your request #{request_id} was declined.\nComment: {comment}",
    "notifications.offer": "Request #{request_id}\nCategory: {category}\n\nRequest text:\n{text}",
    "notifications.offer_returned": "Request #{request_id} (returned to the queue)\nCategory: {category}\n\nRequest text:\n{text}",
    "notifications.offer_taken": "{text}\n\nTaken by: {fulfiller}",
    "notifications.assignment": "Request #{request_id}\nCategory: {category}\n\nRequest text:\n{text}\n\nWrite your answer and send it.",
    "notifications.answer_review": "Answer to request #{request_id}\nCategory: {category}\nFulfiller: {fulfiller}\n\nRequest text:\n{text}\n\nAnswer:\n{answer}",
    "notifications.answer_approved_requester": "Answer to your request #{request_id}:\n\n{answer}",
    "notifications.answer_approved_fulfiller": "Your answer to request #{request_id} was approved.",
    "notifications.answer_declined_fulfiller": "Your answer to request #{request_id} was declined.\nComment: {comment}",
    "notifications.review_approved": "{text}\n\nApproved by {reviewer}",
    "notifications.review_declined": "{text}\n\nDeclined by {reviewer}: {comment}",
    "notifications.answer_withdrawn": "{text}\n\nWithdrawn by the fulfiller for editing.",
    "lists.no_requests": "You have no requests yet.",
    "lists.my_requests_title": "Your requests:",
    "lists.request_line": "{index}. {category} - {status}\n   Date: {date}",
    "lists.answer_label": "   Answer: {answer}",
    "lists.comment_label": "   Comment: {comment}",
    "lists.no_answers": "You have not handled any requests yet.",
    "lists.my_answers_title": "Your answers:",
    "lists.current_assignment": "Current request #{request_id}\nCategory: {category}\nStatus: {status}\n\nRequest text:\n{text}",
    "lists.stats": "Your statistics:\n\nTotal: {total}\nIn progress: {in_progress}\nUnder review: {under_review}\nCompleted: {completed}",
    "lists.completion_rate": "Completion rate: {rate}%",
    "statuses.pending": "Pending review",
    "statuses.approved": "Approved",
    "statuses.declined": "Declined",
    "statuses.assigned": "In progress",
    "statuses.answered": "Answer under review",
    "statuses.closed": "Closed",
}

RU: dict[str, str] = {
    "buttons.ask_question": "Задать вопрос",
    "buttons.my_requests": "Мои обращения",
    "buttons.current_assignment": "Текущее обращение",
    "buttons.my_answers": "Мои ответы",
    "buttons.statistics": "Статистика",
    "buttons.back": "Назад",
    "buttons.confirm": "Подтвердить",
    "buttons.edit": "Изменить",
    "buttons.confirm_answer": "Подтвердить отправку ответа",
    "buttons.edit_answer": "Изменить ответ",
    "buttons.reject_assignment": "Отказаться от обращения",
    "buttons.take_request": "Взять в работу",
    "buttons.approve": "Одобрить",
    "buttons.decline": "Отклонить",
    "prompts.select_category": "Выберите категорию обращения:\n\n{categories}",
    "prompts.enter_request": "Опишите ваше обращение (не менее {min} символов):",
    "prompts.confirm_request": "Проверьте обращение перед отправкой:\n\n{text}",
    "prompts.write_answer": "Введите ваш ответ на обращение #{request_id}:",
    "prompts.check_answer": "Проверьте ваш ответ:\n\n{text}",
    "prompts.decline_reason": "Укажите причину отклонения обращения #{request_id}:",
    "prompts.answer_decline_reason": "Укажите комментарий для исполнителя по обращению #{request_id}:",
    "prompts.select_action": "Выберите действие:",
    "success.request_sent": "Ваше обращение отправлено на рассмотрение.",
    "success.answer_sent": "Ваш ответ отправлен на проверку администратору. Вы получите уведомление о решении.",
    "success.assignment_rejected": "Вы отказались от обращения. Оно возвращено в общую очередь.",
    "success.request_taken": "Обращение взято в работу. Проверьте личные сообщения.",
    "success.decision_recorded": "Решение сохранено.",
    "success.locale_changed": "Язык интерфейса изменён.",
    "errors.general": "Произошла ошибка. Пожалуйста, попробуйте позже.",
    "errors.banned": "Ваш доступ к боту заблокирован.",
    "errors.not_permitted": "Это действие вам недоступно.",
    "errors.no_categories": "Категории пока не добавлены.",
    "errors.unknown_category": "Категория не найдена. Выберите категорию из списка.",
    "errors.text_too_short": "Текст слишком короткий. Минимальная длина {min} символов.",
    "errors.already_handled": "Это обращение уже обработано другим участником.",
    "errors.assignment_held": "У вас уже есть активное обращение.",
    "errors.no_active_assignment": "У вас нет активного обращения.",
    "errors.stale_session": "Диалог устарел и был сброшен.",
    "errors.not_found": "Обращение не найдено.",
    "errors.invalid_transition": "Это действие недоступно для обращения в текущем статусе.",
    "errors.role_demotion_unsupported": "Понижение роли не поддерживается.",
    "errors.category_in_use": "Категория используется в обращениях.",
    "errors.category_exists": "Категория с таким названием уже существует.",
    "errors.empty_category_name": "Название категории не может быть пустым.",
    "errors.empty_text": "Текст не может быть пустым.",
    "errors.unsupported_locale": "Этот язык не поддерживается.",
    "errors.store": "Произошла ошибка. Пожалуйста, попробуйте позже.",
    "errors.internal": "Произошла ошибка. Пожалуйста, попробуйте позже.",
    "notifications.new_request": "Новое обращение #{request_id}\nКатегория: {category}\n\nТекст обращения:\n{text}",
    "notifications.request_approved": "Ваше обращение #{request_id} одобрено и передано исполнителям.",
    "notifications.request_declined": "Ваше обращение #{request_id} отклонено.\nКомментарий: {comment}",
    "notifications.offer": "Обращение #{request_id}\nКатегория: {category}\n\nТекст обращения:\n{text}",
    "notifications.offer_returned": "Обращение #{request_id} (возвращено в очередь)\nКатегория: {category}\n\nТекст обращения:\n{text}",
    "notifications.offer_taken": "{text}\n\nПринято в работу: {fulfiller}",
    "notifications.assignment": "Обращение #{request_id}\nКатегория: {category}\n\nТекст обращения:\n{text}\n\nВведите ваш ответ и отправьте его.",
    "notifications.answer_review": "Ответ на обращение #{request_id}\nКатегория: {category}\nИсполнитель: {fulfiller}\n\nТекст обращения:\n{text}\n\nОтвет:\n{answer}",
    "notifications.answer_approved_requester": "Ответ на ваше обращение #{request_id}:\n\n{answer}",
    "notifications.answer_approved_fulfiller": "Ваш ответ на обращение #{request_id} одобрен.",
    "notifications.answer_declined_fulfiller": "Ваш ответ на обращение #{request_id} отклонен.\nКомментарий: {comment}",
    "notifications.review_approved": "{text}\n\nОдобрено: {reviewer}",
    "notifications.review_declined": "{text}\n\nОтклонено: {reviewer}: {comment}",
    "notifications.answer_withdrawn": "{text}\n\nОтвет отозван исполнителем для доработки.",
    "lists.no_requests": "У вас пока нет обращений.",
    "lists.my_requests_title": "Ваши обращения:",
    "lists.request_line": "{index}. {category} - {status}\n   Дата: {date}",
    "lists.answer_label": "   Ответ: {answer}",
    "lists.comment_label": "   Комментарий: {comment}",
    "lists.no_answers": "Вы пока не обработали ни одного обращения.",
    "lists.my_answers_title": "Ваши ответы на обращения:",
    "lists.current_assignment": "Текущее обращение #{request_id}\nКатегория: {category}\nСтатус: {status}\n\nТекст обращения:\n{text}",
    "lists.stats": "Ваша статистика:\n\nВсего обращений: {total}\nВ работе: {in_progress}\nНа проверке: {under_review}\nЗавершено: {completed}",
    "lists.completion_rate": "Процент завершения: {rate}%",
    "statuses.pending": "На рассмотрении",
    "statuses.approved": "Одобрено",
    "statuses.declined": "Отклонено",
    "statuses.assigned": "В работе",
    "statuses.answered": "Ответ на проверке",
    "statuses.closed": "Закрыто",
}

CATALOGS: dict[str, dict[str, str]] = {"en": EN, "ru": RU}
