from wtforms import Form, PasswordField, SelectField, StringField
from wtforms.validators import DataRequired, Email, EqualTo, Length, Regexp, ValidationError

from . import form_options


def _check_choice(field, allowed, label):
    if field.data and field.data not in allowed:
        raise ValidationError(f'Select a valid {label}.')


def first_error(form):
    """Return the first validation message of a validated form, or None."""
    for errors in form.errors.values():
        if errors:
            return errors[0]
    return None


# Login Form
class LoginForm(Form):
    identifier = StringField('Email / Employee ID', validators=[DataRequired(message='Please fill in both fields')])
    password = PasswordField('Password', validators=[DataRequired(message='Please fill in both fields')])
    role = SelectField('Role', choices=form_options.ROLES, validators=[DataRequired()])


# Period (class session) Form
class PeriodForm(Form):
    year = SelectField('Year', validate_choice=False, validators=[DataRequired()])
    semester = SelectField('Semester', validate_choice=False, validators=[DataRequired()])
    department = SelectField('Department', validate_choice=False, validators=[DataRequired()])
    section = SelectField('Section', validate_choice=False, validators=[DataRequired()])
    subject = SelectField('Subject', validate_choice=False, validators=[DataRequired()])
    block = SelectField('Block', validate_choice=False, validators=[DataRequired()])
    room = SelectField('Room', validate_choice=False, validators=[DataRequired()])
    period = SelectField('Period', validate_choice=False, validators=[DataRequired()])

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.refresh_choices()

    def refresh_choices(self):
        """Recompute the dependent option lists from the current selections."""
        year, semester, department = self.year.data, self.semester.data, self.department.data
        self.year.choices = form_options.as_choices(form_options.YEARS)
        self.semester.choices = form_options.as_choices(form_options.semesters_for(year))
        self.department.choices = form_options.as_choices(form_options.DEPARTMENTS)
        self.section.choices = form_options.as_choices(form_options.sections_for(year, department))
        self.subject.choices = form_options.as_choices(form_options.subjects_for(year, semester, department))
        self.block.choices = form_options.as_choices(form_options.blocks())
        self.room.choices = form_options.as_choices(form_options.rooms_for(self.block.data))
        self.period.choices = form_options.as_choices(form_options.PERIODS)

    def validate_year(self, field):
        _check_choice(field, form_options.YEARS, 'year')

    def validate_semester(self, field):
        _check_choice(field, form_options.semesters_for(self.year.data), 'semester')

    def validate_department(self, field):
        _check_choice(field, form_options.DEPARTMENTS, 'department')

    def validate_section(self, field):
        _check_choice(field, form_options.sections_for(self.year.data, self.department.data), 'section')

    def validate_subject(self, field):
        allowed = form_options.subjects_for(self.year.data, self.semester.data, self.department.data)
        _check_choice(field, allowed, 'subject')

    def validate_block(self, field):
        _check_choice(field, form_options.blocks(), 'block')

    def validate_room(self, field):
        _check_choice(field, form_options.rooms_for(self.block.data), 'room')

    def validate_period(self, field):
        _check_choice(field, form_options.PERIODS, 'period')


# Admin Student Registration Form
class StudentRegistrationForm(Form):
    roll_number = StringField('Roll Number', validators=[DataRequired(), Length(max=20)])
    name = StringField('Full Name', validators=[DataRequired(), Length(max=100)])
    email = StringField('Email', validators=[DataRequired(), Email(message='Please enter a valid email address.')])
    phone = StringField('Phone Number', validators=[
        DataRequired(),
        Regexp(r'^[6-9]\d{9}$', message='Please enter a valid 10-digit Indian phone number (starts with 6-9).')
    ])
    year = SelectField('Year', validate_choice=False, validators=[DataRequired()])
    semester = SelectField('Semester', validate_choice=False, validators=[DataRequired()])
    department = SelectField('Department', validate_choice=False, validators=[DataRequired()])
    section = SelectField('Section', validate_choice=False, validators=[DataRequired()])

    def validate_year(self, field):
        if field.data not in form_options.YEARS:
            raise ValidationError('Please select a valid year.')

    def validate_semester(self, field):
        _check_choice(field, form_options.semesters_for(self.year.data), 'semester')

    def validate_department(self, field):
        _check_choice(field, form_options.DEPARTMENTS, 'department')

    def validate_section(self, field):
        _check_choice(field, form_options.sections_for(self.year.data, self.department.data), 'section')

    def to_payload(self, default_password, role='student'):
        return {
            'rollNumber': self.roll_number.data.strip(),
            'name': self.name.data.strip(),
            'email': self.email.data.strip(),
            'phone': self.phone.data.strip(),
            'year': self.year.data,
            'semester': self.semester.data,
            'department': self.department.data,
            'section': self.section.data,
            'password': default_password,
            'role': role,
        }


# Student Self Sign-up Form
class StudentSignupForm(Form):
    roll_number = StringField('Roll Number', validators=[
        DataRequired(message='Please fill in all required fields'),
        Length(min=3, message='Please enter a valid roll number'),
    ])
    password = PasswordField('Password', validators=[
        DataRequired(message='Please fill in all required fields'),
        Length(min=6, message='Password must be at least 6 characters long'),
    ])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired(message='Please fill in all required fields'),
        EqualTo('password', message='Passwords do not match'),
    ])


class ForgotPasswordForm(Form):
    email = StringField('Email', validators=[DataRequired(), Email(message='Please enter a valid email address.')])


class ResetPasswordForm(Form):
    email = StringField('Email', validators=[DataRequired(), Email(message='Please enter a valid email address.')])
    token = StringField('Reset Token', validators=[DataRequired()])
    new_password = PasswordField('New Password', validators=[
        DataRequired(),
        Length(min=8, message='Password must be at least 8 characters long.'),
    ])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired(),
        EqualTo('new_password', message='New passwords do not match!'),
    ])
